"""Structured values the scheduling engine works with.

The storage layer converts database rows into these objects (and back), so
the selector, policy, executor and service never touch JSON columns.
All timestamps are naive UTC datetimes.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple


class JobStatus:
    PENDING = "pending"
    EXECUTING = "executing"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"

    ALL = (PENDING, EXECUTING, SENT, FAILED, CANCELLED)
    TERMINAL = (SENT, FAILED, CANCELLED)


class LogStatus:
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"

    # Entries written for a delivery attempt (as opposed to audit entries).
    ATTEMPTS = (SUCCESS, ERROR)


class TriggerKind:
    ONCE = "once"
    INTERVAL = "interval"


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() + "Z" if dt else None


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class ScheduleTrigger:
    """When a job becomes due: an absolute instant or a fixed interval."""

    kind: str
    run_at: Optional[datetime] = None
    interval_minutes: Optional[int] = None
    # Local date/time as received, kept for display and for the delivered body.
    scheduled_date: Optional[str] = None
    scheduled_time: Optional[str] = None

    @classmethod
    def once(
        cls,
        run_at: datetime,
        *,
        scheduled_date: Optional[str] = None,
        scheduled_time: Optional[str] = None,
    ) -> "ScheduleTrigger":
        if scheduled_date is None:
            scheduled_date = run_at.strftime("%Y-%m-%d")
        if scheduled_time is None:
            scheduled_time = run_at.strftime("%H:%M")
        return cls(
            kind=TriggerKind.ONCE,
            run_at=run_at,
            scheduled_date=scheduled_date,
            scheduled_time=scheduled_time,
        )

    @classmethod
    def interval(cls, minutes: int) -> "ScheduleTrigger":
        return cls(kind=TriggerKind.INTERVAL, interval_minutes=int(minutes))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "run_at": iso(self.run_at),
            "interval_minutes": self.interval_minutes,
            "scheduled_date": self.scheduled_date,
            "scheduled_time": self.scheduled_time,
        }


@dataclass(frozen=True)
class Lead:
    id: str
    name: str
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    custom_fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Lead":
        return cls(
            id=str(raw.get("id") or new_id()),
            name=str(raw.get("name") or ""),
            email=str(raw.get("email") or ""),
            phone=raw.get("phone"),
            company=raw.get("company"),
            custom_fields=dict(raw.get("customFields") or raw.get("custom_fields") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "name": self.name, "email": self.email}
        if self.phone is not None:
            out["phone"] = self.phone
        if self.company is not None:
            out["company"] = self.company
        if self.custom_fields:
            out["customFields"] = dict(self.custom_fields)
        return out


@dataclass(frozen=True)
class JobPayload:
    message: str
    leads: Tuple[Lead, ...] = ()
    # Unique, in first-seen order.
    tags: Tuple[str, ...] = ()

    @classmethod
    def build(cls, message: str, leads=(), tags=()) -> "JobPayload":
        seen = []
        for tag in tags or ():
            tag = str(tag)
            if tag not in seen:
                seen.append(tag)
        return cls(message=str(message), leads=tuple(leads or ()), tags=tuple(seen))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "leads": [lead.to_dict() for lead in self.leads],
            "tags": list(self.tags),
        }


@dataclass
class Job:
    id: str
    name: str
    target_url: str
    payload: JobPayload
    trigger: ScheduleTrigger
    status: str = JobStatus.PENDING
    retry_count: int = 0
    max_retries: int = 3
    created_at: datetime = field(default_factory=utcnow)
    executed_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    is_deleted: bool = False
    last_error_message: Optional[str] = None
    http_method: str = "POST"
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def due_at(self) -> Optional[datetime]:
        """Next instant the trigger is satisfied, ignoring retry history."""
        if self.trigger.kind == TriggerKind.ONCE:
            return self.trigger.run_at
        if self.trigger.kind == TriggerKind.INTERVAL and self.trigger.interval_minutes:
            return self.created_at + timedelta(minutes=int(self.trigger.interval_minutes))
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "target_url": self.target_url,
            "http_method": self.http_method,
            "headers": dict(self.headers),
            "payload": self.payload.to_dict(),
            "trigger": self.trigger.to_dict(),
            "due_at": iso(self.due_at),
            "status": self.status,
            "retry_count": int(self.retry_count),
            "max_retries": int(self.max_retries),
            "created_at": iso(self.created_at),
            "executed_at": iso(self.executed_at),
            "deleted_at": iso(self.deleted_at),
            "is_deleted": bool(self.is_deleted),
            "last_error_message": self.last_error_message,
        }


@dataclass(frozen=True)
class ExecutionLogEntry:
    id: str
    job_id: str
    timestamp: datetime
    status: str
    message: str
    response_snapshot: Optional[Any] = None
    error_message: Optional[str] = None
    duration_ms: int = 0
    # Filled in by listings that join the owning job.
    job_name: Optional[str] = None

    @classmethod
    def create(
        cls,
        job_id: str,
        status: str,
        message: str,
        *,
        response_snapshot: Optional[Any] = None,
        error_message: Optional[str] = None,
        duration_ms: int = 0,
        timestamp: Optional[datetime] = None,
    ) -> "ExecutionLogEntry":
        return cls(
            id=new_id(),
            job_id=job_id,
            timestamp=timestamp or utcnow(),
            status=status,
            message=message,
            response_snapshot=response_snapshot,
            error_message=error_message,
            duration_ms=int(duration_ms),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "job_name": self.job_name,
            "timestamp": iso(self.timestamp),
            "status": self.status,
            "message": self.message,
            "response": self.response_snapshot,
            "error_message": self.error_message,
            "duration_ms": int(self.duration_ms),
        }


@dataclass(frozen=True)
class DeliveryOutcome:
    succeeded: bool
    http_status: Optional[int] = None
    response_body: Optional[Any] = None
    transport_error: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class Decision:
    next_status: str
    next_retry_count: int
    error_message: Optional[str]


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    message: str
    duration_ms: int = 0
    skipped: bool = False
    status: Optional[str] = None
    retry_count: Optional[int] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "duration_ms": int(self.duration_ms),
            "skipped": self.skipped,
            "status": self.status,
            "retry_count": self.retry_count,
            "error_message": self.error_message,
        }
