"""Helpers shared by the Streamlit pages.

The dashboard talks to the same database as the API/MCP processes but never
starts the scheduler loop itself; delivery keeps running out-of-process.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd
import streamlit as st

from webhook_scheduler.scheduler.config import SchedulerConfig
from webhook_scheduler.scheduler.domain import ExecutionLogEntry, Job
from webhook_scheduler.scheduler.runtime import SchedulerRuntime, build_runtime
from webhook_scheduler.scheduler.service import WebhookService


@st.cache_resource
def get_runtime() -> SchedulerRuntime:
    return build_runtime(SchedulerConfig.from_env())


def get_service() -> WebhookService:
    return get_runtime().service


def _short(dt_iso: Optional[str]) -> str:
    if not dt_iso:
        return ""
    return dt_iso.replace("T", " ").rstrip("Z")[:19]


def jobs_frame(jobs: List[Job]) -> pd.DataFrame:
    rows: List[Dict[str, Any]] = []
    for job in jobs:
        d = job.to_dict()
        rows.append(
            {
                "id": job.id,
                "name": job.name,
                "status": job.status,
                "schedule": (
                    f"every {job.trigger.interval_minutes} min"
                    if job.trigger.interval_minutes
                    else f"{job.trigger.scheduled_date} {job.trigger.scheduled_time}"
                ),
                "due_at": _short(d["due_at"]),
                "retries": f"{job.retry_count}/{job.max_retries}",
                "leads": len(job.payload.leads),
                "tags": ", ".join(job.payload.tags),
                "target_url": job.target_url,
                "executed_at": _short(d["executed_at"]),
                "deleted_at": _short(d["deleted_at"]),
                "last_error": job.last_error_message or "",
            }
        )
    return pd.DataFrame(rows)


def logs_frame(entries: List[ExecutionLogEntry]) -> pd.DataFrame:
    rows = [
        {
            "timestamp": _short(e.to_dict()["timestamp"]),
            "job": e.job_name or e.job_id,
            "status": e.status,
            "message": e.message,
            "error": e.error_message or "",
            "duration_ms": e.duration_ms,
        }
        for e in entries
    ]
    return pd.DataFrame(rows)
