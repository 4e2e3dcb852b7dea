from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from threading import Event, Lock, Thread
from typing import Any, Dict, Optional

from webhook_scheduler.scheduler.domain import ExecutionResult, Job, iso, utcnow
from webhook_scheduler.scheduler.executor import Executor
from webhook_scheduler.scheduler.selector import DueJobSelector


logger = logging.getLogger(__name__)


@dataclass
class SchedulerRuntimeState:
    started_at_utc: str = field(default_factory=lambda: iso(utcnow().replace(microsecond=0)))
    ticks: int = 0
    last_tick_at_utc: Optional[str] = None
    last_tick_summary: Optional[Dict[str, Any]] = None


def _empty_summary() -> Dict[str, int]:
    return {"jobs_due": 0, "executed": 0, "ok": 0, "failed": 0, "skipped": 0, "errors": 0}


def _execute_guarded(executor: Executor, job: Job) -> Optional[ExecutionResult]:
    """Per-job error boundary: one job's failure never stops the others."""
    try:
        return executor.execute(job, is_manual=False)
    except Exception:  # noqa: BLE001
        logger.exception("Executing webhook %s (%s) failed", job.id, job.name)
        return None


def _count(summary: Dict[str, int], result: Optional[ExecutionResult]) -> None:
    if result is None:
        summary["errors"] += 1
    elif result.skipped:
        summary["skipped"] += 1
    else:
        summary["executed"] += 1
        if result.success:
            summary["ok"] += 1
        else:
            summary["failed"] += 1


def run_tick(
    selector: DueJobSelector,
    executor: Executor,
    *,
    now: Optional[datetime] = None,
    max_concurrency: int = 1,
    stop_event: Optional[Event] = None,
) -> Dict[str, int]:
    """Select due jobs once and attempt each of them.

    Deliveries run on at most `max_concurrency` worker threads. The claim in
    `Executor.execute` keeps a job from being attempted twice even if it
    shows up in two overlapping ticks.
    """
    summary = _empty_summary()
    due = selector.select(now)
    summary["jobs_due"] = len(due)
    if not due:
        return summary

    logger.info("Tick: %s webhook(s) due", len(due))

    workers = max(1, min(int(max_concurrency), len(due)))
    if workers == 1:
        for job in due:
            if stop_event is not None and stop_event.is_set():
                break
            _count(summary, _execute_guarded(executor, job))
        return summary

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="webhook-delivery") as pool:
        futures = [pool.submit(_execute_guarded, executor, job) for job in due]
        for future in futures:
            _count(summary, future.result())
    return summary


def run_scheduler_forever(
    selector: DueJobSelector,
    executor: Executor,
    *,
    tick_seconds: float,
    max_concurrency: int,
    stop_event: Event,
    state: SchedulerRuntimeState,
) -> None:
    """Blocking loop that executes due webhooks on a wall-clock timer."""

    logger.info("Scheduler loop started (tick=%ss, concurrency=%s)", tick_seconds, max_concurrency)
    while not stop_event.is_set():
        tick_started = time.monotonic()
        state.last_tick_at_utc = iso(utcnow().replace(microsecond=0))

        try:
            summary = run_tick(
                selector,
                executor,
                max_concurrency=max_concurrency,
                stop_event=stop_event,
            )
        except Exception as exc:  # noqa: BLE001
            # Typically the selector could not read the store; try again next tick.
            logger.exception("Scheduler tick failed")
            summary = dict(_empty_summary(), tick_error=str(exc))

        state.ticks += 1
        state.last_tick_summary = summary

        # Sleep for the tick interval (minus time spent), but wake quickly on stop.
        elapsed = time.monotonic() - tick_started
        stop_event.wait(timeout=max(0.2, float(tick_seconds) - elapsed))

    logger.info("Scheduler loop stopped")


class BackgroundScheduler:
    """Owns the scheduler loop thread for a process."""

    def __init__(
        self,
        selector: DueJobSelector,
        executor: Executor,
        *,
        tick_seconds: float = 60,
        max_concurrency: int = 4,
    ):
        self._selector = selector
        self._executor = executor
        self.tick_seconds = tick_seconds
        self.max_concurrency = max_concurrency
        self.state = SchedulerRuntimeState()
        self._stop = Event()
        self._thread: Optional[Thread] = None
        self._lock = Lock()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop.clear()
            self._thread = Thread(
                target=run_scheduler_forever,
                args=(self._selector, self._executor),
                kwargs={
                    "tick_seconds": self.tick_seconds,
                    "max_concurrency": self.max_concurrency,
                    "stop_event": self._stop,
                    "state": self.state,
                },
                name="webhook-scheduler-loop",
                daemon=True,
            )
            self._thread.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        with self._lock:
            self._stop.set()
            if self._thread is not None:
                self._thread.join(timeout=timeout)
            self._thread = None

    def is_alive(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def health(self) -> Dict[str, Any]:
        return {
            "thread_alive": self.is_alive(),
            "tick_seconds": self.tick_seconds,
            "max_concurrency": self.max_concurrency,
            "started_at_utc": self.state.started_at_utc,
            "ticks": self.state.ticks,
            "last_tick_at_utc": self.state.last_tick_at_utc,
            "last_tick_summary": self.state.last_tick_summary,
        }
