from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict

from webhook_scheduler.scheduler.delivery import DeliveryClient
from webhook_scheduler.scheduler.domain import (
    DeliveryOutcome,
    ExecutionLogEntry,
    ExecutionResult,
    Job,
    JobStatus,
    LogStatus,
    iso,
    utcnow,
)
from webhook_scheduler.scheduler.policy import decide, describe_failure
from webhook_scheduler.scheduler.repo import JobStore


logger = logging.getLogger(__name__)


def build_delivery_body(job: Job, *, executed_at: datetime, is_manual: bool) -> Dict[str, Any]:
    """JSON body sent to the job's target URL."""
    trigger = job.trigger
    return {
        "id": job.id,
        "name": job.name,
        "scheduledDate": trigger.scheduled_date,
        "scheduledTime": trigger.scheduled_time,
        "intervalMinutes": trigger.interval_minutes,
        "message": job.payload.message,
        "leads": [lead.to_dict() for lead in job.payload.leads],
        "tags": list(job.payload.tags),
        "executedAt": iso(executed_at),
        "isManualExecution": bool(is_manual),
    }


def _log_message(outcome: DeliveryOutcome) -> str:
    if outcome.succeeded:
        return f"Webhook delivered successfully ({outcome.http_status})"
    if outcome.transport_error:
        return "Connection error: could not reach the webhook"
    return f"Error {describe_failure(outcome)}"


class Executor:
    """Runs one delivery attempt for one job and records its outcome.

    Order per job is fixed: claim (pending -> executing), deliver, then persist
    the decided state together with one log entry. If the claim fails the
    attempt is abandoned without touching the job or the log.

    `delivery` is anything with a `deliver(url, body, *, method, headers)`
    method returning a `DeliveryOutcome`.
    """

    def __init__(
        self,
        store: JobStore,
        delivery: DeliveryClient,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._delivery = delivery
        self._clock = clock

    def execute(self, job: Job, is_manual: bool = False) -> ExecutionResult:
        started = time.monotonic()

        claimed = self._store.claim_job(job.id)
        if claimed is None:
            # Report the state that blocked the claim, not the caller's copy.
            current = self._store.get_job(job.id) or job
            logger.info("Webhook %s is %s; attempt skipped", job.id, current.status)
            return ExecutionResult(
                success=False,
                skipped=True,
                message=f"Webhook is {current.status}; execution skipped",
                status=current.status,
                retry_count=current.retry_count,
            )

        executed_at = self._clock()
        body = build_delivery_body(claimed, executed_at=executed_at, is_manual=is_manual)
        logger.info(
            "Delivering webhook %s (%s) to %s [manual=%s]",
            claimed.id, claimed.name, claimed.target_url, is_manual,
        )

        try:
            outcome = self._delivery.deliver(
                claimed.target_url,
                body,
                method=claimed.http_method,
                headers=claimed.headers,
            )
        except Exception as exc:  # noqa: BLE001
            # The job is already marked executing; it must still leave that state.
            logger.exception("Delivery client failed for webhook %s", claimed.id)
            outcome = DeliveryOutcome(succeeded=False, transport_error=f"{type(exc).__name__}: {exc}")

        decision = decide(claimed, outcome)
        duration_ms = int((time.monotonic() - started) * 1000)

        if outcome.succeeded:
            entry = ExecutionLogEntry.create(
                claimed.id,
                LogStatus.SUCCESS,
                _log_message(outcome),
                response_snapshot=outcome.response_body,
                duration_ms=duration_ms,
                timestamp=self._clock(),
            )
        else:
            entry = ExecutionLogEntry.create(
                claimed.id,
                LogStatus.ERROR,
                _log_message(outcome),
                response_snapshot=outcome.response_body if outcome.http_status is not None else None,
                error_message=decision.error_message,
                duration_ms=duration_ms,
                timestamp=self._clock(),
            )

        # Storage failures propagate to the caller's error boundary.
        self._store.finish_attempt(claimed.id, decision, executed_at=executed_at, log=entry)

        if outcome.succeeded:
            logger.info("Webhook %s delivered (%s) in %sms", claimed.id, outcome.http_status, duration_ms)
        elif decision.next_status == JobStatus.FAILED:
            logger.warning(
                "Webhook %s failed permanently after %s attempt(s): %s",
                claimed.id, decision.next_retry_count or 1, decision.error_message,
            )
        else:
            logger.warning(
                "Webhook %s attempt failed (retry %s/%s): %s",
                claimed.id, decision.next_retry_count, claimed.max_retries, decision.error_message,
            )

        return ExecutionResult(
            success=outcome.succeeded,
            message=entry.message,
            duration_ms=duration_ms,
            status=decision.next_status,
            retry_count=decision.next_retry_count,
            error_message=decision.error_message,
        )
