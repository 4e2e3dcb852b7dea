from datetime import timedelta

from conftest import NOW, make_job
from webhook_scheduler.scheduler.domain import ExecutionLogEntry, JobStatus, LogStatus
from webhook_scheduler.scheduler.selector import is_due, is_retry_eligible


def _ids(jobs):
    return [j.id for j in jobs]


def test_once_job_due_only_after_run_at():
    job = make_job(run_at=NOW + timedelta(minutes=5))
    assert not is_due(job, NOW)
    assert is_due(job, NOW + timedelta(minutes=5))


def test_interval_job_due_from_creation_then_from_last_attempt():
    job = make_job(interval_minutes=30, created_at=NOW - timedelta(minutes=31))
    assert is_due(job, NOW)
    assert not is_due(job, NOW, last_attempt_at=NOW - timedelta(minutes=10))
    assert is_due(job, NOW, last_attempt_at=NOW - timedelta(minutes=30))


def test_non_pending_and_deleted_jobs_are_never_due():
    for status in (JobStatus.EXECUTING, JobStatus.SENT, JobStatus.FAILED, JobStatus.CANCELLED):
        assert not is_due(make_job(status=status), NOW)
    assert not is_due(make_job(is_deleted=True, deleted_at=NOW), NOW)


def test_retry_eligibility():
    assert is_retry_eligible(make_job(retry_count=0, max_retries=0))
    assert is_retry_eligible(make_job(retry_count=2, max_retries=3))
    assert not is_retry_eligible(make_job(retry_count=3, max_retries=3))


def test_select_returns_due_jobs_in_creation_order(store, selector):
    late = make_job(name="late", created_at=NOW - timedelta(minutes=10))
    early = make_job(name="early", created_at=NOW - timedelta(minutes=20))
    future = make_job(name="future", run_at=NOW + timedelta(hours=1))
    for job in (late, early, future):
        store.insert_job(job)

    assert _ids(selector.select(NOW)) == [early.id, late.id]


def test_select_is_idempotent_without_execution(store, selector):
    for i in range(3):
        store.insert_job(make_job(name=f"job-{i}"))
    assert _ids(selector.select(NOW)) == _ids(selector.select(NOW))


def test_select_excludes_sent_failed_and_trashed(store, selector):
    store.insert_job(make_job(status=JobStatus.SENT))
    store.insert_job(make_job(status=JobStatus.FAILED, retry_count=3, max_retries=3))
    store.insert_job(make_job(is_deleted=True, deleted_at=NOW))
    pending = make_job()
    store.insert_job(pending)

    assert _ids(selector.select(NOW)) == [pending.id]


def test_interval_selection_ignores_audit_entries(store, selector):
    job = make_job(interval_minutes=15, created_at=NOW - timedelta(minutes=20))
    store.insert_job(job)
    store.append_log(ExecutionLogEntry.create(job.id, LogStatus.INFO, "Restored", timestamp=NOW))
    assert _ids(selector.select(NOW)) == [job.id]

    store.append_log(
        ExecutionLogEntry.create(job.id, LogStatus.ERROR, "failed", timestamp=NOW - timedelta(minutes=5))
    )
    assert selector.select(NOW) == []
