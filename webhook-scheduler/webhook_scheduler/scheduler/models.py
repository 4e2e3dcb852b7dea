from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

from webhook_scheduler.scheduler.domain import JobStatus, new_id, utcnow


Base = declarative_base()


class WebhookJob(Base):
    __tablename__ = "webhooks"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(256), nullable=False)

    target_url = Column(Text, nullable=False)
    http_method = Column(String(10), default="POST", nullable=False)
    headers_json = Column(Text, default="{}", nullable=False)

    message = Column(Text, nullable=False)
    leads_json = Column(Text, default="[]", nullable=False)  # ordered JSON list
    tags_json = Column(Text, default="[]", nullable=False)  # JSON list, unique

    schedule_type = Column(String(16), nullable=False)  # once|interval
    run_at = Column(DateTime, nullable=True)
    scheduled_date = Column(String(10), nullable=True)
    scheduled_time = Column(String(5), nullable=True)
    interval_minutes = Column(Integer, nullable=True)

    status = Column(String(16), default=JobStatus.PENDING, nullable=False)
    retry_count = Column(Integer, default=0, nullable=False)
    max_retries = Column(Integer, default=3, nullable=False)
    last_error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    executed_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_webhooks_status_deleted", "status", "is_deleted"),
        Index("ix_webhooks_deleted_at", "is_deleted", "deleted_at"),
        Index("ix_webhooks_run_at", "run_at"),
    )


class ExecutionLog(Base):
    __tablename__ = "webhook_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    job_id = Column(String(36), ForeignKey("webhooks.id", ondelete="CASCADE"), nullable=False, index=True)

    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)
    status = Column(String(16), nullable=False)  # success|error|info
    message = Column(Text, nullable=False)
    response_json = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    duration_ms = Column(Integer, default=0, nullable=False)
