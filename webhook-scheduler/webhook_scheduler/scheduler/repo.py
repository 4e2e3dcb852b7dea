"""Storage access layer for webhook jobs and their execution log.

`JobStore` is the only component that talks to the database. It converts rows
to and from the structured values in `domain`, so JSON columns are encoded and
decoded here and nowhere else.
"""
from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from webhook_scheduler.scheduler.db import build_engine, build_sessionmaker
from webhook_scheduler.scheduler.domain import (
    Decision,
    ExecutionLogEntry,
    Job,
    JobPayload,
    JobStatus,
    Lead,
    LogStatus,
    ScheduleTrigger,
    TriggerKind,
)
from webhook_scheduler.scheduler.errors import StorageError
from webhook_scheduler.scheduler.models import Base, ExecutionLog, WebhookJob


_MAX_SNAPSHOT_CHARS = 10000


def _dumps(value: Any) -> str:
    return json.dumps(value, default=str)


def _loads(raw: Optional[str], default: Any) -> Any:
    if not raw:
        return default
    try:
        value = json.loads(raw)
    except ValueError:
        return default
    return value if isinstance(value, type(default)) else default


def _snapshot_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    raw = _dumps(value)
    if len(raw) > _MAX_SNAPSHOT_CHARS:
        # Keep it valid JSON: store the truncated text as a string.
        raw = _dumps(raw[:_MAX_SNAPSHOT_CHARS] + "...[truncated]")
    return raw


def _snapshot_value(raw: Optional[str]) -> Optional[Any]:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _to_job(row: WebhookJob) -> Job:
    if row.schedule_type == TriggerKind.INTERVAL:
        trigger = ScheduleTrigger.interval(int(row.interval_minutes or 0))
    else:
        trigger = ScheduleTrigger(
            kind=TriggerKind.ONCE,
            run_at=row.run_at,
            scheduled_date=row.scheduled_date,
            scheduled_time=row.scheduled_time,
        )

    leads = [Lead.from_dict(raw) for raw in _loads(row.leads_json, []) if isinstance(raw, dict)]
    payload = JobPayload.build(row.message or "", leads, _loads(row.tags_json, []))

    return Job(
        id=row.id,
        name=row.name,
        target_url=row.target_url,
        payload=payload,
        trigger=trigger,
        status=row.status,
        retry_count=int(row.retry_count or 0),
        max_retries=int(row.max_retries or 0),
        created_at=row.created_at,
        executed_at=row.executed_at,
        deleted_at=row.deleted_at,
        is_deleted=bool(row.is_deleted),
        last_error_message=row.last_error_message,
        http_method=row.http_method or "POST",
        headers={str(k): str(v) for k, v in _loads(row.headers_json, {}).items()},
    )


def _to_row(job: Job) -> WebhookJob:
    return WebhookJob(
        id=job.id,
        name=job.name,
        target_url=job.target_url,
        http_method=job.http_method,
        headers_json=_dumps(dict(job.headers)),
        message=job.payload.message,
        leads_json=_dumps([lead.to_dict() for lead in job.payload.leads]),
        tags_json=_dumps(list(job.payload.tags)),
        schedule_type=job.trigger.kind,
        run_at=job.trigger.run_at,
        scheduled_date=job.trigger.scheduled_date,
        scheduled_time=job.trigger.scheduled_time,
        interval_minutes=job.trigger.interval_minutes,
        status=job.status,
        retry_count=int(job.retry_count),
        max_retries=int(job.max_retries),
        last_error_message=job.last_error_message,
        created_at=job.created_at,
        executed_at=job.executed_at,
        deleted_at=job.deleted_at,
        is_deleted=bool(job.is_deleted),
    )


def _editable_values(job: Job) -> Dict[str, Any]:
    """Columns an edit may change; state, retry bookkeeping and max_retries stay put."""
    row = _to_row(job)
    return {
        name: getattr(row, name)
        for name in (
            "name",
            "target_url",
            "http_method",
            "headers_json",
            "message",
            "leads_json",
            "tags_json",
            "schedule_type",
            "run_at",
            "scheduled_date",
            "scheduled_time",
            "interval_minutes",
        )
    }


def _to_log_row(entry: ExecutionLogEntry) -> ExecutionLog:
    return ExecutionLog(
        id=entry.id,
        job_id=entry.job_id,
        timestamp=entry.timestamp,
        status=entry.status,
        message=entry.message,
        response_json=_snapshot_json(entry.response_snapshot),
        error_message=entry.error_message[:2000] if entry.error_message else None,
        duration_ms=int(entry.duration_ms),
    )


def _to_log_entry(row: ExecutionLog, job_name: Optional[str] = None) -> ExecutionLogEntry:
    return ExecutionLogEntry(
        id=row.id,
        job_id=row.job_id,
        timestamp=row.timestamp,
        status=row.status,
        message=row.message,
        response_snapshot=_snapshot_value(row.response_json),
        error_message=row.error_message,
        duration_ms=int(row.duration_ms or 0),
        job_name=job_name,
    )


class JobStore:
    """SQLAlchemy-backed store of webhook jobs and execution log entries.

    Every public method runs in its own transaction. SQLAlchemy failures are
    re-raised as `StorageError`.
    """

    def __init__(self, database_url: Optional[str] = None, *, engine: Optional[Engine] = None):
        if engine is None:
            if not database_url:
                raise ValueError("JobStore needs a database_url or an engine")
            engine = build_engine(database_url)
        self.engine = engine
        self._sessionmaker = build_sessionmaker(engine)

    def init_db(self) -> None:
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not create tables: {exc}") from exc

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError(str(exc)) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # -- jobs -----------------------------------------------------------------

    def insert_job(self, job: Job, *, log: Optional[ExecutionLogEntry] = None) -> Job:
        with self._transaction() as s:
            s.add(_to_row(job))
            if log is not None:
                # Parent row must exist before the log row references it.
                s.flush()
                s.add(_to_log_row(log))
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._transaction() as s:
            row = s.get(WebhookJob, str(job_id))
            return _to_job(row) if row else None

    def list_jobs(
        self,
        *,
        is_deleted: Optional[bool] = False,
        statuses: Optional[Sequence[str]] = None,
        newest_first: bool = True,
    ) -> List[Job]:
        q = select(WebhookJob)
        if is_deleted is not None:
            q = q.where(WebhookJob.is_deleted.is_(bool(is_deleted)))
        if statuses:
            q = q.where(WebhookJob.status.in_(list(statuses)))
        if newest_first:
            q = q.order_by(WebhookJob.created_at.desc(), WebhookJob.id.desc())
        else:
            q = q.order_by(WebhookJob.created_at.asc(), WebhookJob.id.asc())
        with self._transaction() as s:
            return [_to_job(r) for r in s.execute(q).scalars().all()]

    def list_due_candidates(self, now: Optional[datetime] = None) -> List[Job]:
        """Pending, live, retry-eligible jobs in creation order.

        When `now` is given, absolute-trigger jobs scheduled after it are
        filtered out in SQL; interval triggers are evaluated by the caller.
        """
        q = (
            select(WebhookJob)
            .where(WebhookJob.is_deleted.is_(False))
            .where(WebhookJob.status == JobStatus.PENDING)
            .where(or_(WebhookJob.retry_count < WebhookJob.max_retries, WebhookJob.retry_count == 0))
        )
        if now is not None:
            q = q.where(or_(WebhookJob.schedule_type != TriggerKind.ONCE, WebhookJob.run_at <= now))
        q = q.order_by(WebhookJob.created_at.asc(), WebhookJob.id.asc())
        with self._transaction() as s:
            return [_to_job(r) for r in s.execute(q).scalars().all()]

    def last_attempt_times(self, job_ids: Sequence[str]) -> Dict[str, datetime]:
        if not job_ids:
            return {}
        q = (
            select(ExecutionLog.job_id, func.max(ExecutionLog.timestamp))
            .where(ExecutionLog.job_id.in_(list(job_ids)))
            .where(ExecutionLog.status.in_(LogStatus.ATTEMPTS))
            .group_by(ExecutionLog.job_id)
        )
        with self._transaction() as s:
            return {job_id: ts for job_id, ts in s.execute(q).all() if ts is not None}

    def claim_job(self, job_id: str) -> Optional[Job]:
        """Move a job from pending to executing; None when someone else holds it.

        The conditional UPDATE is the guard against double delivery: only one
        caller can observe rowcount == 1 for a given pending job.
        """
        with self._transaction() as s:
            res = s.execute(
                update(WebhookJob)
                .where(WebhookJob.id == str(job_id))
                .where(WebhookJob.status == JobStatus.PENDING)
                .where(WebhookJob.is_deleted.is_(False))
                .values(status=JobStatus.EXECUTING)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                return None
            row = s.get(WebhookJob, str(job_id))
            return _to_job(row) if row else None

    def finish_attempt(
        self,
        job_id: str,
        decision: Decision,
        *,
        executed_at: datetime,
        log: ExecutionLogEntry,
    ) -> Optional[Job]:
        """Persist an attempt's outcome and its log entry in one transaction."""
        with self._transaction() as s:
            row = s.get(WebhookJob, str(job_id))
            if row is None:
                return None
            row.status = decision.next_status
            row.retry_count = int(decision.next_retry_count)
            row.last_error_message = decision.error_message
            row.executed_at = executed_at
            s.add(_to_log_row(log))
            s.flush()
            return _to_job(row)

    def update_job(self, job: Job, *, log: Optional[ExecutionLogEntry] = None) -> Optional[Job]:
        """Overwrite a job's editable fields; None unless it is still pending and live.

        Uses the same pending guard as `claim_job`, so an edit never lands on
        a job that an attempt has already claimed.
        """
        with self._transaction() as s:
            res = s.execute(
                update(WebhookJob)
                .where(WebhookJob.id == str(job.id))
                .where(WebhookJob.status == JobStatus.PENDING)
                .where(WebhookJob.is_deleted.is_(False))
                .values(**_editable_values(job))
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                return None
            if log is not None:
                s.add(_to_log_row(log))
            row = s.get(WebhookJob, str(job.id))
            return _to_job(row) if row else None

    def cancel_job(self, job_id: str, *, log: Optional[ExecutionLogEntry] = None) -> Optional[Job]:
        with self._transaction() as s:
            res = s.execute(
                update(WebhookJob)
                .where(WebhookJob.id == str(job_id))
                .where(WebhookJob.status == JobStatus.PENDING)
                .values(status=JobStatus.CANCELLED)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                return None
            if log is not None:
                s.add(_to_log_row(log))
            row = s.get(WebhookJob, str(job_id))
            return _to_job(row) if row else None

    def soft_delete(self, job_id: str, *, now: datetime, log: Optional[ExecutionLogEntry] = None) -> Optional[Job]:
        with self._transaction() as s:
            row = s.get(WebhookJob, str(job_id))
            if row is None:
                return None
            if not row.is_deleted:
                row.is_deleted = True
                row.deleted_at = now
                if log is not None:
                    s.add(_to_log_row(log))
            return _to_job(row)

    def restore(self, job_id: str, *, log: Optional[ExecutionLogEntry] = None) -> Optional[Job]:
        with self._transaction() as s:
            row = s.get(WebhookJob, str(job_id))
            if row is None:
                return None
            if row.is_deleted:
                row.is_deleted = False
                row.deleted_at = None
                if log is not None:
                    s.add(_to_log_row(log))
            return _to_job(row)

    def purge(self, job_id: str) -> bool:
        """Delete a job and all of its log entries."""
        with self._transaction() as s:
            s.execute(delete(ExecutionLog).where(ExecutionLog.job_id == str(job_id)))
            res = s.execute(delete(WebhookJob).where(WebhookJob.id == str(job_id)))
            return res.rowcount > 0

    def soft_delete_all(self, *, now: datetime, message: str = "Moved to trash (bulk delete)") -> int:
        with self._transaction() as s:
            ids = s.execute(select(WebhookJob.id).where(WebhookJob.is_deleted.is_(False))).scalars().all()
            if not ids:
                return 0
            s.execute(
                update(WebhookJob)
                .where(WebhookJob.id.in_(ids))
                .values(is_deleted=True, deleted_at=now)
                .execution_options(synchronize_session=False)
            )
            for job_id in ids:
                s.add(_to_log_row(ExecutionLogEntry.create(job_id, LogStatus.INFO, message, timestamp=now)))
            return len(ids)

    def empty_trash(self) -> int:
        with self._transaction() as s:
            ids = s.execute(select(WebhookJob.id).where(WebhookJob.is_deleted.is_(True))).scalars().all()
            if not ids:
                return 0
            s.execute(delete(ExecutionLog).where(ExecutionLog.job_id.in_(ids)))
            s.execute(delete(WebhookJob).where(WebhookJob.id.in_(ids)))
            return len(ids)

    def count_by_status(self) -> Tuple[Dict[str, int], int]:
        """Live job counts per status, plus the number of trashed jobs."""
        with self._transaction() as s:
            rows = s.execute(
                select(WebhookJob.status, func.count(WebhookJob.id))
                .where(WebhookJob.is_deleted.is_(False))
                .group_by(WebhookJob.status)
            ).all()
            deleted = s.execute(
                select(func.count(WebhookJob.id)).where(WebhookJob.is_deleted.is_(True))
            ).scalar_one()
        return {str(status): int(n) for status, n in rows}, int(deleted or 0)

    # -- execution log ----------------------------------------------------------

    def append_log(self, entry: ExecutionLogEntry) -> ExecutionLogEntry:
        with self._transaction() as s:
            s.add(_to_log_row(entry))
        return entry

    def list_logs(
        self,
        *,
        job_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[ExecutionLogEntry], int]:
        """Newest-first page of log entries and the total number of matches."""
        q = (
            select(ExecutionLog, WebhookJob.name)
            .outerjoin(WebhookJob, WebhookJob.id == ExecutionLog.job_id)
            .order_by(ExecutionLog.timestamp.desc(), ExecutionLog.id.desc())
            .limit(max(1, int(limit)))
            .offset(max(0, int(offset)))
        )
        count_q = select(func.count(ExecutionLog.id))
        if job_id:
            q = q.where(ExecutionLog.job_id == str(job_id))
            count_q = count_q.where(ExecutionLog.job_id == str(job_id))
        with self._transaction() as s:
            entries = [_to_log_entry(row, name) for row, name in s.execute(q).all()]
            total = s.execute(count_q).scalar_one()
        return entries, int(total or 0)
