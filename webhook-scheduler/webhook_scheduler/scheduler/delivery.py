from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional

import requests

from webhook_scheduler.scheduler.domain import DeliveryOutcome


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30
USER_AGENT = "webhook-scheduler/1.0"

_MAX_TEXT_BODY = 5000
_MAX_BODY_BYTES = 64 * 1024


class _DeadlineExceeded(Exception):
    pass


def _read_body(resp: requests.Response, deadline: float) -> bytes:
    """Read at most `_MAX_BODY_BYTES` of the body, giving up at `deadline`."""
    data = bytearray()
    # Byte-sized reads return as soon as anything arrives, so a trickling
    # body is checked against the deadline between bytes.
    for chunk in resp.iter_content(chunk_size=1):
        if time.monotonic() > deadline:
            raise _DeadlineExceeded()
        data.extend(chunk)
        if len(data) >= _MAX_BODY_BYTES:
            break
    if time.monotonic() > deadline:
        raise _DeadlineExceeded()
    return bytes(data)


def _decode_body(resp: requests.Response, raw: bytes) -> Optional[Any]:
    if not raw:
        return None
    text = raw.decode(resp.encoding or "utf-8", errors="replace")
    content_type = resp.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return json.loads(text)
        except ValueError:
            pass
    if len(text) > _MAX_TEXT_BODY:
        text = text[:_MAX_TEXT_BODY] + "...[truncated]"
    return text


class DeliveryClient:
    """Performs exactly one outbound HTTP request per call.

    Every call is an independent `requests.request` (no shared session, no
    cookie carry-over between jobs), so the client is safe to use from the
    delivery worker threads. `timeout_seconds` bounds the whole attempt,
    including reading the response body.

    Non-2xx responses are reported as a failed outcome, never raised.
    Connection problems and timeouts are reported through `transport_error`.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        self.timeout_seconds = float(timeout_seconds)

    def _timeout_outcome(self) -> DeliveryOutcome:
        return DeliveryOutcome(
            succeeded=False,
            transport_error=f"Timeout: no response within {self.timeout_seconds:g}s",
        )

    def deliver(
        self,
        url: str,
        body: Any,
        *,
        method: str = "POST",
        headers: Optional[Dict[str, str]] = None,
    ) -> DeliveryOutcome:
        request_headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        if headers:
            request_headers.update(headers)

        method = (method or "POST").upper()
        kwargs: Dict[str, Any] = {
            "headers": request_headers,
            "timeout": self.timeout_seconds,
            "stream": True,
        }
        # GET requests carry no body.
        if method != "GET":
            kwargs["json"] = body

        deadline = time.monotonic() + self.timeout_seconds
        resp: Optional[requests.Response] = None
        try:
            resp = requests.request(method, url, **kwargs)
            if time.monotonic() > deadline:
                raise _DeadlineExceeded()
            raw = _read_body(resp, deadline)
        except _DeadlineExceeded:
            logger.debug("Webhook %s exceeded the %ss delivery deadline", url, self.timeout_seconds)
            return self._timeout_outcome()
        except requests.exceptions.Timeout:
            return self._timeout_outcome()
        except requests.exceptions.ConnectionError as exc:
            return DeliveryOutcome(succeeded=False, transport_error=f"Connection error: {exc}")
        except requests.exceptions.RequestException as exc:
            return DeliveryOutcome(succeeded=False, transport_error=f"{type(exc).__name__}: {exc}")
        finally:
            if resp is not None:
                resp.close()

        ok = 200 <= resp.status_code < 300
        if not ok:
            logger.debug("Webhook %s answered HTTP %s", url, resp.status_code)
        return DeliveryOutcome(
            succeeded=ok,
            http_status=int(resp.status_code),
            response_body=_decode_body(resp, raw),
            reason=resp.reason,
        )

    def close(self) -> None:
        """Nothing is pooled between calls; kept for the runtime's shutdown path."""
