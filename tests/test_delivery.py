import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from unittest.mock import MagicMock, patch

import pytest
import requests

from webhook_scheduler.scheduler.delivery import USER_AGENT, DeliveryClient


def _response(status, *, body=b"", content_type="application/json", reason="OK"):
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status
    resp.reason = reason
    resp.encoding = "utf-8"
    resp.headers = {"content-type": content_type}
    resp.iter_content.return_value = iter([body[i:i + 1] for i in range(len(body))])
    return resp


@patch("webhook_scheduler.scheduler.delivery.requests.request")
def test_2xx_is_success_with_json_snapshot(mock_request):
    mock_request.return_value = _response(201, body=b'{"ok": true}')
    client = DeliveryClient(10)

    outcome = client.deliver("https://hooks.example.com/x", {"a": 1}, headers={"X-Token": "t"})

    assert outcome.succeeded is True
    assert outcome.http_status == 201
    assert outcome.response_body == {"ok": True}
    args, kwargs = mock_request.call_args
    assert args == ("POST", "https://hooks.example.com/x")
    assert kwargs["json"] == {"a": 1}
    assert kwargs["timeout"] == 10
    assert kwargs["stream"] is True
    assert kwargs["headers"]["User-Agent"] == USER_AGENT
    assert kwargs["headers"]["X-Token"] == "t"
    mock_request.return_value.close.assert_called_once()


@patch("webhook_scheduler.scheduler.delivery.requests.request")
def test_non_2xx_is_failure_not_exception(mock_request):
    mock_request.return_value = _response(
        500, body=b"upstream down", content_type="text/plain", reason="Internal Server Error"
    )

    outcome = DeliveryClient().deliver("https://hooks.example.com/x", {})

    assert outcome.succeeded is False
    assert outcome.http_status == 500
    assert outcome.response_body == "upstream down"
    assert outcome.reason == "Internal Server Error"
    assert outcome.transport_error is None


@patch("webhook_scheduler.scheduler.delivery.requests.request")
def test_timeout_is_transport_error(mock_request):
    mock_request.side_effect = requests.exceptions.ReadTimeout("read timed out")

    outcome = DeliveryClient(30).deliver("https://hooks.example.com/x", {})

    assert outcome.succeeded is False
    assert outcome.http_status is None
    assert outcome.transport_error == "Timeout: no response within 30s"


@patch("webhook_scheduler.scheduler.delivery.requests.request")
def test_connection_error_is_transport_error(mock_request):
    mock_request.side_effect = requests.exceptions.ConnectionError("refused")

    outcome = DeliveryClient().deliver("https://hooks.example.com/x", {})

    assert outcome.transport_error.startswith("Connection error")


@patch("webhook_scheduler.scheduler.delivery.requests.request")
def test_get_sends_no_body(mock_request):
    mock_request.return_value = _response(204)

    outcome = DeliveryClient().deliver("https://hooks.example.com/x", {"a": 1}, method="get")

    assert outcome.succeeded is True
    assert outcome.response_body is None
    args, kwargs = mock_request.call_args
    assert args[0] == "GET"
    assert "json" not in kwargs


# -- against local servers ----------------------------------------------------


@pytest.fixture
def trickle_server():
    """Answers 200 with an 8-byte body sent one byte every 0.6s."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    port = listener.getsockname()[1]

    def serve():
        try:
            conn, _ = listener.accept()
        except OSError:
            return
        with conn:
            try:
                conn.recv(65536)
                conn.sendall(
                    b"HTTP/1.1 200 OK\r\nContent-Type: text/plain\r\n"
                    b"Content-Length: 8\r\nConnection: close\r\n\r\n"
                )
                for byte in b"abcdefgh":
                    time.sleep(0.6)
                    conn.sendall(bytes([byte]))
            except OSError:
                pass

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{port}/hook"
    listener.close()
    thread.join(timeout=6)


def test_trickling_body_is_cut_off_at_the_timeout(trickle_server):
    started = time.monotonic()

    outcome = DeliveryClient(timeout_seconds=1).deliver(trickle_server, {"a": 1})

    elapsed = time.monotonic() - started
    assert outcome.succeeded is False
    assert outcome.transport_error == "Timeout: no response within 1s"
    assert elapsed < 2.5


class _CookieRecorder(BaseHTTPRequestHandler):
    seen = []

    def do_POST(self):
        self.rfile.read(int(self.headers.get("Content-Length") or 0))
        type(self).seen.append(self.headers.get("Cookie"))
        self.send_response(200)
        self.send_header("Set-Cookie", "sid=job-a-secret; Path=/")
        self.send_header("Content-Type", "text/plain")
        self.send_header("Content-Length", "2")
        self.end_headers()
        self.wfile.write(b"ok")

    def log_message(self, format, *args):
        pass


@pytest.fixture
def cookie_server():
    _CookieRecorder.seen = []
    server = HTTPServer(("127.0.0.1", 0), _CookieRecorder)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()
    thread.join(timeout=5)


def test_cookies_do_not_leak_between_deliveries(cookie_server):
    client = DeliveryClient(5)

    first = client.deliver(f"{cookie_server}/job-a", {"job": "a"})
    second = client.deliver(f"{cookie_server}/job-b", {"job": "b"})

    assert first.succeeded and second.succeeded
    assert _CookieRecorder.seen == [None, None]
