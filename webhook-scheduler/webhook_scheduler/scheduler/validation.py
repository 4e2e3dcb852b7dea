"""Validation of incoming job specifications (e.g. from an n8n workflow).

A spec carries either an absolute schedule (`scheduledDate` + `scheduledTime`,
interpreted in the configured timezone) or a repeat interval
(`intervalMinutes`). Field names follow the n8n payload; snake_case aliases
are accepted too.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from webhook_scheduler.scheduler.domain import JobPayload, Lead, ScheduleTrigger, new_id
from webhook_scheduler.scheduler.errors import JobValidationError


HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^\d{2}:\d{2}$")


class LeadIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    name: str
    email: str
    phone: Optional[str] = None
    company: Optional[str] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict, alias="customFields")

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("lead name is required")
        return v.strip()

    @field_validator("email")
    @classmethod
    def _email_shape(cls, v: str) -> str:
        v = v.strip()
        if not _EMAIL_RE.match(v):
            raise ValueError(f"invalid email: {v}")
        return v


class JobSpecIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    webhook_url: str = Field(alias="webhookUrl")
    message: str
    leads: List[LeadIn] = Field(min_length=1)
    tags: List[str] = Field(default_factory=list)

    scheduled_date: Optional[str] = Field(default=None, alias="scheduledDate")
    scheduled_time: Optional[str] = Field(default=None, alias="scheduledTime")
    interval_minutes: Optional[int] = Field(default=None, alias="intervalMinutes", gt=0)

    max_retries: Optional[int] = Field(default=None, alias="maxRetries", ge=0)
    method: str = "POST"
    headers: Dict[str, str] = Field(default_factory=dict)

    @field_validator("name", "message")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("webhook_url")
    @classmethod
    def _absolute_url(cls, v: str) -> str:
        v = v.strip()
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("must be an absolute http(s) URL")
        return v

    @field_validator("method")
    @classmethod
    def _known_method(cls, v: str) -> str:
        v = (v or "POST").strip().upper()
        if v not in HTTP_METHODS:
            raise ValueError("must be one of " + ", ".join(HTTP_METHODS))
        return v

    @field_validator("scheduled_date")
    @classmethod
    def _date_shape(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _DATE_RE.match(v.strip()):
            raise ValueError("invalid date format, use YYYY-MM-DD")
        return v.strip() if v else v

    @field_validator("scheduled_time")
    @classmethod
    def _time_shape(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not _TIME_RE.match(v.strip()):
            raise ValueError("invalid time format, use HH:MM")
        return v.strip() if v else v

    @model_validator(mode="after")
    def _one_trigger(self) -> "JobSpecIn":
        has_absolute = bool(self.scheduled_date or self.scheduled_time)
        has_interval = self.interval_minutes is not None
        if has_absolute and has_interval:
            raise ValueError("give either scheduledDate/scheduledTime or intervalMinutes, not both")
        if not has_absolute and not has_interval:
            raise ValueError("a schedule is required: scheduledDate + scheduledTime, or intervalMinutes")
        if has_absolute and not (self.scheduled_date and self.scheduled_time):
            raise ValueError("scheduledDate and scheduledTime must be given together")
        return self


@dataclass(frozen=True)
class ParsedJobSpec:
    name: str
    target_url: str
    payload: JobPayload
    trigger: ScheduleTrigger
    max_retries: int
    http_method: str
    headers: Dict[str, str]


def _format_errors(exc: ValidationError) -> List[str]:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "__root__")
        msg = str(err.get("msg", "invalid value"))
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        messages.append(f"{loc}: {msg}" if loc else msg)
    return messages


def resolve_run_at(scheduled_date: str, scheduled_time: str, tz_name: str = "UTC") -> datetime:
    """Local date + time in `tz_name` -> naive UTC datetime."""
    try:
        tz = ZoneInfo(tz_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise JobValidationError([f"unknown timezone: {tz_name}"]) from exc
    try:
        local = datetime.strptime(f"{scheduled_date} {scheduled_time}", "%Y-%m-%d %H:%M")
    except ValueError as exc:
        raise JobValidationError([f"invalid date/time: {scheduled_date} {scheduled_time}"]) from exc
    return local.replace(tzinfo=tz).astimezone(timezone.utc).replace(tzinfo=None)


def parse_job_spec(
    data: Any,
    *,
    default_max_retries: int = 3,
    tz_name: str = "UTC",
) -> ParsedJobSpec:
    """Validate a raw job spec; raises `JobValidationError` with every problem found."""
    if not isinstance(data, dict):
        raise JobValidationError(["job specification must be a JSON object"])

    if data.get("schedule_type") == "cron" or data.get("scheduleType") == "cron":
        raise JobValidationError(["cron schedules are not supported; use intervalMinutes"])

    try:
        spec = JobSpecIn.model_validate(data)
    except ValidationError as exc:
        raise JobValidationError(_format_errors(exc)) from exc

    if spec.interval_minutes is not None:
        trigger = ScheduleTrigger.interval(spec.interval_minutes)
    else:
        run_at = resolve_run_at(spec.scheduled_date, spec.scheduled_time, tz_name)
        trigger = ScheduleTrigger.once(
            run_at,
            scheduled_date=spec.scheduled_date,
            scheduled_time=spec.scheduled_time,
        )

    leads = [
        Lead(
            id=lead.id or new_id(),
            name=lead.name,
            email=lead.email,
            phone=lead.phone,
            company=lead.company,
            custom_fields=dict(lead.custom_fields),
        )
        for lead in spec.leads
    ]

    max_retries = spec.max_retries if spec.max_retries is not None else default_max_retries

    return ParsedJobSpec(
        name=spec.name,
        target_url=spec.webhook_url,
        payload=JobPayload.build(spec.message, leads, spec.tags),
        trigger=trigger,
        max_retries=int(max_retries),
        http_method=spec.method,
        headers=dict(spec.headers),
    )
