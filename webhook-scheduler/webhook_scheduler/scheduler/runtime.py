from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from webhook_scheduler.scheduler.config import SchedulerConfig
from webhook_scheduler.scheduler.delivery import DeliveryClient
from webhook_scheduler.scheduler.executor import Executor
from webhook_scheduler.scheduler.repo import JobStore
from webhook_scheduler.scheduler.runner import BackgroundScheduler
from webhook_scheduler.scheduler.selector import DueJobSelector
from webhook_scheduler.scheduler.service import WebhookService


@dataclass
class SchedulerRuntime:
    """Every collaborator of one scheduler process, wired together."""

    config: SchedulerConfig
    store: JobStore
    delivery: DeliveryClient
    selector: DueJobSelector
    executor: Executor
    service: WebhookService
    background: BackgroundScheduler

    def health(self) -> dict:
        return {
            "ok": True,
            "service": "webhook-scheduler",
            "enabled": bool(self.config.enabled),
            "db": self.config.database_url.split(":", 1)[0],
            "scheduler": self.background.health(),
        }

    def shutdown(self) -> None:
        self.background.stop()
        self.delivery.close()
        self.store.dispose()


def build_runtime(
    cfg: Optional[SchedulerConfig] = None,
    *,
    store: Optional[JobStore] = None,
    delivery: Optional[DeliveryClient] = None,
) -> SchedulerRuntime:
    cfg = cfg or SchedulerConfig.from_env()
    store = store or JobStore(cfg.database_url)
    store.init_db()
    delivery = delivery or DeliveryClient(cfg.delivery_timeout_seconds)

    selector = DueJobSelector(store)
    executor = Executor(store, delivery)
    service = WebhookService(
        store,
        executor,
        default_max_retries=cfg.default_max_retries,
        timezone=cfg.timezone,
    )
    background = BackgroundScheduler(
        selector,
        executor,
        tick_seconds=cfg.tick_seconds,
        max_concurrency=cfg.max_concurrency,
    )
    return SchedulerRuntime(
        config=cfg,
        store=store,
        delivery=delivery,
        selector=selector,
        executor=executor,
        service=service,
        background=background,
    )
