"""Operations exposed to the REST API, the MCP tools and the dashboard."""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from webhook_scheduler.scheduler.domain import (
    ExecutionLogEntry,
    ExecutionResult,
    Job,
    JobStatus,
    LogStatus,
    iso,
    new_id,
    utcnow,
)
from webhook_scheduler.scheduler.errors import (
    ConfirmationError,
    JobNotFoundError,
    JobStateError,
    JobValidationError,
)
from webhook_scheduler.scheduler.executor import Executor
from webhook_scheduler.scheduler.repo import JobStore
from webhook_scheduler.scheduler.validation import parse_job_spec


logger = logging.getLogger(__name__)

BULK_DELETE_CONFIRMATION = "DELETE ALL WEBHOOKS"
EMPTY_TRASH_CONFIRMATION = "EMPTY TRASH"


class WebhookService:
    def __init__(
        self,
        store: JobStore,
        executor: Executor,
        *,
        default_max_retries: int = 3,
        timezone: str = "UTC",
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._executor = executor
        self.default_max_retries = int(default_max_retries)
        self.timezone = timezone
        self._clock = clock

    def _require(self, job_id: str) -> Job:
        job = self._store.get_job(str(job_id))
        if job is None:
            raise JobNotFoundError(str(job_id))
        return job

    def _audit(self, job_id: str, message: str) -> ExecutionLogEntry:
        return ExecutionLogEntry.create(job_id, LogStatus.INFO, message, timestamp=self._clock())

    # -- creation / execution ---------------------------------------------------

    def receive(self, spec: Any) -> Dict[str, Any]:
        """Validate and persist a job specification.

        Raises `JobValidationError` before anything is written.
        """
        parsed = parse_job_spec(
            spec,
            default_max_retries=self.default_max_retries,
            tz_name=self.timezone,
        )
        now = self._clock()
        job = Job(
            id=new_id(),
            name=parsed.name,
            target_url=parsed.target_url,
            payload=parsed.payload,
            trigger=parsed.trigger,
            status=JobStatus.PENDING,
            retry_count=0,
            max_retries=parsed.max_retries,
            created_at=now,
            http_method=parsed.http_method,
            headers=parsed.headers,
        )
        self._store.insert_job(job, log=self._audit(job.id, f'Webhook "{job.name}" scheduled'))
        logger.info("Scheduled webhook %s (%s) due at %s", job.id, job.name, iso(job.due_at))
        return {"id": job.id, "due_at": iso(job.due_at), "job": job.to_dict()}

    def execute(self, job_id: str) -> ExecutionResult:
        """Run one manual attempt now, regardless of the trigger."""
        job = self._require(job_id)
        if job.is_deleted:
            raise JobStateError(job.id, "deleted", "execute")
        result = self._executor.execute(job, is_manual=True)
        if result.skipped:
            raise JobStateError(job.id, result.status, "execute")
        return result

    def update(self, job_id: str, spec: Any) -> Job:
        """Replace a pending job's definition with a freshly validated spec.

        Status, retry bookkeeping and `max_retries` are kept; only jobs that
        are pending and not in the trash can be edited.
        """
        job = self._require(job_id)
        if job.is_deleted:
            raise JobStateError(job.id, "deleted", "update")
        if job.status != JobStatus.PENDING:
            raise JobStateError(job.id, job.status, "update")

        parsed = parse_job_spec(
            spec,
            default_max_retries=job.max_retries,
            tz_name=self.timezone,
        )
        edited = replace(
            job,
            name=parsed.name,
            target_url=parsed.target_url,
            payload=parsed.payload,
            trigger=parsed.trigger,
            http_method=parsed.http_method,
            headers=parsed.headers,
        )
        updated = self._store.update_job(edited, log=self._audit(job.id, "Webhook updated"))
        if updated is None:
            # Claimed, cancelled or trashed since it was read.
            current = self._store.get_job(job.id)
            if current is None:
                raise JobNotFoundError(job.id)
            raise JobStateError(job.id, "deleted" if current.is_deleted else current.status, "update")
        logger.info("Updated webhook %s (%s) due at %s", updated.id, updated.name, iso(updated.due_at))
        return updated

    def cancel(self, job_id: str) -> Job:
        job = self._require(job_id)
        cancelled = self._store.cancel_job(job.id, log=self._audit(job.id, "Webhook cancelled"))
        if cancelled is None:
            raise JobStateError(job.id, job.status, "cancel")
        logger.info("Cancelled webhook %s", job.id)
        return cancelled

    # -- queries ------------------------------------------------------------------

    def list_jobs(self, include_deleted: bool = False, status: Optional[str] = None) -> List[Job]:
        if status is not None and status not in JobStatus.ALL:
            raise JobValidationError([f"unknown status: {status}"])
        return self._store.list_jobs(
            is_deleted=None if include_deleted else False,
            statuses=[status] if status else None,
        )

    def list_trash(self) -> List[Job]:
        return self._store.list_jobs(is_deleted=True)

    def get_job(self, job_id: str) -> Job:
        return self._require(job_id)

    def list_logs(
        self,
        job_id: Optional[str] = None,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        if job_id is not None:
            self._require(job_id)
        entries, total = self._store.list_logs(job_id=job_id, limit=limit, offset=offset)
        return {
            "logs": entries,
            "total": total,
            "limit": int(limit),
            "offset": int(offset),
        }

    def stats(self) -> Dict[str, int]:
        counts, deleted = self._store.count_by_status()
        out = {status: int(counts.get(status, 0)) for status in JobStatus.ALL}
        out["total"] = sum(counts.values())
        out["deleted"] = deleted
        return out

    # -- trash ----------------------------------------------------------------------

    def soft_delete(self, job_id: str) -> Job:
        job = self._store.soft_delete(
            str(job_id),
            now=self._clock(),
            log=self._audit(str(job_id), "Moved to trash"),
        )
        if job is None:
            raise JobNotFoundError(str(job_id))
        logger.info("Moved webhook %s to trash", job.id)
        return job

    def restore(self, job_id: str) -> Job:
        job = self._store.restore(str(job_id), log=self._audit(str(job_id), "Restored from trash"))
        if job is None:
            raise JobNotFoundError(str(job_id))
        logger.info("Restored webhook %s", job.id)
        return job

    def purge(self, job_id: str) -> None:
        """Permanently remove a job and its log, whether trashed or not."""
        if not self._store.purge(str(job_id)):
            raise JobNotFoundError(str(job_id))
        logger.info("Permanently deleted webhook %s", job_id)

    def soft_delete_all(self, confirmation: Optional[str]) -> int:
        if confirmation != BULK_DELETE_CONFIRMATION:
            raise ConfirmationError(BULK_DELETE_CONFIRMATION)
        count = self._store.soft_delete_all(now=self._clock())
        logger.info("Moved %s webhook(s) to trash", count)
        return count

    def empty_trash(self, confirmation: Optional[str]) -> int:
        if confirmation != EMPTY_TRASH_CONFIRMATION:
            raise ConfirmationError(EMPTY_TRASH_CONFIRMATION)
        count = self._store.empty_trash()
        logger.info("Emptied trash: %s webhook(s) permanently deleted", count)
        return count
