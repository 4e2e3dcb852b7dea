import pytest

from conftest import http_error_outcome, make_job, ok_outcome, timeout_outcome
from webhook_scheduler.scheduler.domain import DeliveryOutcome, JobStatus
from webhook_scheduler.scheduler.policy import decide, describe_failure


def test_success_marks_sent_and_keeps_retry_count():
    job = make_job(retry_count=1, max_retries=3)
    d = decide(job, ok_outcome())
    assert d.next_status == JobStatus.SENT
    assert d.next_retry_count == 1
    assert d.error_message is None


def test_first_failure_stays_pending():
    d = decide(make_job(retry_count=0, max_retries=3), timeout_outcome())
    assert d.next_status == JobStatus.PENDING
    assert d.next_retry_count == 1
    assert d.error_message.startswith("Timeout")


def test_last_failure_marks_failed():
    d = decide(make_job(retry_count=2, max_retries=3), http_error_outcome(503, "Service Unavailable"))
    assert d.next_status == JobStatus.FAILED
    assert d.next_retry_count == 3
    assert d.error_message == "HTTP 503: Service Unavailable"


def test_zero_max_retries_fails_after_single_attempt():
    d = decide(make_job(retry_count=0, max_retries=0), timeout_outcome())
    assert d.next_status == JobStatus.FAILED
    assert d.next_retry_count == 0


@pytest.mark.parametrize("max_retries", [0, 1, 2, 5])
def test_retry_count_never_exceeds_max(max_retries):
    job = make_job(retry_count=0, max_retries=max_retries)
    for _ in range(max_retries + 2):
        d = decide(job, timeout_outcome())
        assert 0 <= d.next_retry_count <= max_retries
        job.retry_count = d.next_retry_count
        if d.next_status == JobStatus.FAILED:
            break
    assert d.next_status == JobStatus.FAILED


def test_describe_failure_texts():
    assert describe_failure(DeliveryOutcome(succeeded=False, transport_error="Connection error: refused")) == (
        "Connection error: refused"
    )
    assert describe_failure(DeliveryOutcome(succeeded=False, http_status=404)) == "HTTP 404"
    assert describe_failure(DeliveryOutcome(succeeded=False)) == "Delivery failed"
