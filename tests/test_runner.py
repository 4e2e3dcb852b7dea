import threading
import time
from unittest.mock import MagicMock

from conftest import NOW, FakeDelivery, make_job, ok_outcome, timeout_outcome
from webhook_scheduler.scheduler.domain import ExecutionResult, JobStatus
from webhook_scheduler.scheduler.errors import StorageError
from webhook_scheduler.scheduler.executor import Executor
from webhook_scheduler.scheduler.runner import BackgroundScheduler, run_tick


def test_tick_executes_due_jobs(store, selector, clock):
    jobs = [make_job(name=f"job-{i}") for i in range(3)]
    for job in jobs:
        store.insert_job(job)
    executor = Executor(store, FakeDelivery(ok_outcome(), timeout_outcome(), ok_outcome()), clock=clock)

    summary = run_tick(selector, executor, now=NOW)

    assert summary["jobs_due"] == 3
    assert summary["executed"] == 3
    assert summary["ok"] == 2
    assert summary["failed"] == 1
    statuses = sorted(store.get_job(j.id).status for j in jobs)
    assert statuses == [JobStatus.PENDING, JobStatus.SENT, JobStatus.SENT]


def test_completed_job_absent_from_next_tick(store, selector, clock):
    job = make_job()
    store.insert_job(job)
    executor = Executor(store, FakeDelivery(ok_outcome()), clock=clock)

    assert run_tick(selector, executor, now=NOW)["executed"] == 1
    assert run_tick(selector, executor, now=NOW)["jobs_due"] == 0


def test_one_failing_job_does_not_stop_the_others():
    jobs = [make_job(name=f"job-{i}") for i in range(3)]
    selector = MagicMock()
    selector.select.return_value = jobs
    executor = MagicMock()
    executor.execute.side_effect = [
        ExecutionResult(success=True, message="ok"),
        StorageError("database is locked"),
        ExecutionResult(success=True, message="ok"),
    ]

    summary = run_tick(selector, executor, now=NOW)

    assert executor.execute.call_count == 3
    assert summary["errors"] == 1
    assert summary["ok"] == 2


def test_concurrent_tick_counts_every_job():
    jobs = [make_job(name=f"job-{i}") for i in range(8)]
    selector = MagicMock()
    selector.select.return_value = jobs
    seen = []
    lock = threading.Lock()

    def execute(job, is_manual=False):
        with lock:
            seen.append((job.id, threading.current_thread().name))
        if job.name == "job-3":
            return ExecutionResult(success=False, message="skip", skipped=True)
        return ExecutionResult(success=True, message="ok")

    executor = MagicMock()
    executor.execute.side_effect = execute

    summary = run_tick(selector, executor, now=NOW, max_concurrency=4)

    assert sorted(job_id for job_id, _ in seen) == sorted(j.id for j in jobs)
    assert all(name.startswith("webhook-delivery") for _, name in seen)
    assert summary == {"jobs_due": 8, "executed": 7, "ok": 7, "failed": 0, "skipped": 1, "errors": 0}


def test_background_scheduler_survives_selector_errors():
    selector = MagicMock()
    selector.select.side_effect = StorageError("no such table")
    scheduler = BackgroundScheduler(selector, MagicMock(), tick_seconds=0, max_concurrency=1)

    scheduler.start()
    try:
        deadline = time.monotonic() + 5
        while scheduler.state.ticks < 2 and time.monotonic() < deadline:
            time.sleep(0.05)
        assert scheduler.is_alive()
    finally:
        scheduler.stop()

    assert not scheduler.is_alive()
    health = scheduler.health()
    assert health["ticks"] >= 2
    assert "no such table" in health["last_tick_summary"]["tick_error"]
