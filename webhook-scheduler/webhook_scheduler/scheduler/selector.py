from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional

from webhook_scheduler.scheduler.domain import Job, JobStatus, TriggerKind, utcnow
from webhook_scheduler.scheduler.repo import JobStore


def is_retry_eligible(job: Job) -> bool:
    # A job that was never attempted always gets its first attempt,
    # even with max_retries == 0.
    return job.retry_count < job.max_retries or job.retry_count == 0


def is_due(job: Job, now: datetime, last_attempt_at: Optional[datetime] = None) -> bool:
    """Full due-ness predicate for one job at instant `now`."""
    if job.is_deleted or job.status != JobStatus.PENDING or not is_retry_eligible(job):
        return False

    trigger = job.trigger
    if trigger.kind == TriggerKind.ONCE:
        return trigger.run_at is not None and trigger.run_at <= now

    if trigger.kind == TriggerKind.INTERVAL:
        minutes = int(trigger.interval_minutes or 0)
        if minutes <= 0:
            return False
        since = last_attempt_at or job.created_at
        return now - since >= timedelta(minutes=minutes)

    return False


class DueJobSelector:
    """Returns the jobs whose trigger is satisfied at a given instant.

    Read-only: calling `select` repeatedly without executing anything in
    between returns the same jobs. Duplicate delivery is prevented by the
    executor's claim, not here.
    """

    def __init__(self, store: JobStore):
        self._store = store

    def select(self, now: Optional[datetime] = None) -> List[Job]:
        now = now or utcnow()
        candidates = self._store.list_due_candidates(now)

        interval_ids = [j.id for j in candidates if j.trigger.kind == TriggerKind.INTERVAL]
        last_attempts = self._store.last_attempt_times(interval_ids)

        return [j for j in candidates if is_due(j, now, last_attempts.get(j.id))]
