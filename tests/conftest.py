"""Shared fixtures: a SQLite-backed store, a scripted delivery client and a fixed clock."""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pytest

from webhook_scheduler.scheduler.domain import (
    DeliveryOutcome,
    Job,
    JobPayload,
    Lead,
    ScheduleTrigger,
    new_id,
)
from webhook_scheduler.scheduler.executor import Executor
from webhook_scheduler.scheduler.repo import JobStore
from webhook_scheduler.scheduler.selector import DueJobSelector
from webhook_scheduler.scheduler.service import WebhookService


NOW = datetime(2024, 5, 1, 12, 0, 0)


class FixedClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeDelivery:
    """Returns queued outcomes in order (last one repeats) and records every call."""

    def __init__(self, *outcomes: DeliveryOutcome):
        self.outcomes: List[Any] = list(outcomes) or [ok_outcome()]
        self.calls: List[Dict[str, Any]] = []

    def deliver(self, url, body, *, method="POST", headers=None):
        self.calls.append({"url": url, "body": body, "method": method, "headers": headers})
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        pass


def ok_outcome(status: int = 200) -> DeliveryOutcome:
    return DeliveryOutcome(succeeded=True, http_status=status, response_body={"received": True}, reason="OK")


def timeout_outcome() -> DeliveryOutcome:
    return DeliveryOutcome(succeeded=False, transport_error="Timeout: no response within 30s")


def http_error_outcome(status: int = 500, reason: str = "Internal Server Error") -> DeliveryOutcome:
    return DeliveryOutcome(succeeded=False, http_status=status, response_body="boom", reason=reason)


def make_job(
    *,
    name: str = "Follow-up",
    run_at: Optional[datetime] = None,
    interval_minutes: Optional[int] = None,
    created_at: datetime = NOW - timedelta(hours=1),
    **overrides: Any,
) -> Job:
    if interval_minutes is not None:
        trigger = ScheduleTrigger.interval(interval_minutes)
    else:
        trigger = ScheduleTrigger.once(run_at or NOW - timedelta(minutes=1))
    payload = JobPayload.build(
        "Hello from the scheduler",
        [
            Lead(id="lead-1", name="Ada Lovelace", email="ada@example.com", company="Analytical"),
            Lead(id="lead-2", name="Alan Turing", email="alan@example.com", custom_fields={"tier": "gold"}),
        ],
        ["vip", "q2", "vip"],
    )
    fields = dict(
        id=new_id(),
        name=name,
        target_url="https://hooks.example.com/incoming",
        payload=payload,
        trigger=trigger,
        created_at=created_at,
    )
    fields.update(overrides)
    return Job(**fields)


def spec_dict(**overrides: Any) -> Dict[str, Any]:
    spec = {
        "name": "Weekly digest",
        "webhookUrl": "https://hooks.example.com/n8n",
        "message": "Your weekly digest",
        "scheduledDate": "2024-05-01",
        "scheduledTime": "11:59",
        "leads": [
            {"name": "Ada Lovelace", "email": "ada@example.com"},
            {"name": "Alan Turing", "email": "alan@example.com", "customFields": {"tier": "gold"}},
        ],
        "tags": ["digest", "weekly"],
    }
    spec.update(overrides)
    return {k: v for k, v in spec.items() if v is not None}


@pytest.fixture
def store(tmp_path):
    s = JobStore(f"sqlite:///{(tmp_path / 'webhooks.db').as_posix()}")
    s.init_db()
    yield s
    s.dispose()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def delivery():
    return FakeDelivery()


@pytest.fixture
def executor(store, delivery, clock):
    return Executor(store, delivery, clock=clock)


@pytest.fixture
def selector(store):
    return DueJobSelector(store)


@pytest.fixture
def service(store, executor, clock):
    return WebhookService(store, executor, default_max_retries=3, timezone="UTC", clock=clock)
