"""Retry/state policy: maps an attempt outcome to the job's next state.

    pending --(success)--------------------------------> sent       [terminal]
    pending --(failure, retry_count+1 <  max_retries)--> pending    [retry-eligible]
    pending --(failure, retry_count+1 >= max_retries)--> failed     [terminal]

Cancellation, soft delete and restore are administrative and live in the
service layer.
"""
from __future__ import annotations

from webhook_scheduler.scheduler.domain import Decision, DeliveryOutcome, Job, JobStatus


def describe_failure(outcome: DeliveryOutcome) -> str:
    if outcome.transport_error:
        return outcome.transport_error
    if outcome.http_status is not None:
        reason = f": {outcome.reason}" if outcome.reason else ""
        return f"HTTP {outcome.http_status}{reason}"
    return "Delivery failed"


def decide(job: Job, outcome: DeliveryOutcome) -> Decision:
    if outcome.succeeded:
        return Decision(
            next_status=JobStatus.SENT,
            next_retry_count=int(job.retry_count),
            error_message=None,
        )

    max_retries = max(0, int(job.max_retries))
    # With max_retries == 0 the single allowed attempt must not push the
    # counter past the bound.
    next_retry_count = min(int(job.retry_count) + 1, max_retries) if max_retries else 0

    if next_retry_count >= max_retries:
        next_status = JobStatus.FAILED
    else:
        next_status = JobStatus.PENDING

    return Decision(
        next_status=next_status,
        next_retry_count=next_retry_count,
        error_message=describe_failure(outcome),
    )
