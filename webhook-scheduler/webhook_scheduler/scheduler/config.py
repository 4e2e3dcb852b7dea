from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from webhook_scheduler.config_utils import env_bool, env_first, env_int, env_str


@dataclass(frozen=True)
class SchedulerConfig:
    """Runtime configuration for the webhook scheduler service.

    DB selection:
    - WEBHOOK_SCHEDULER_DATABASE_URL: scheduler-specific DB URL (preferred)
    - PLATFORM_DATABASE_URL / DATABASE_URL: shared DB URL
    - If none is set, defaults to local SQLite at data/webhooks.db

    Loop:
    - WEBHOOK_SCHEDULER_ENABLED: start the background loop (default: true)
    - WEBHOOK_SCHEDULER_TICK_SECONDS: how often to check for due jobs (default: 60)
    - WEBHOOK_SCHEDULER_MAX_CONCURRENCY: deliveries in flight per tick (default: 4)

    Delivery:
    - WEBHOOK_SCHEDULER_DELIVERY_TIMEOUT_SECONDS: per-attempt HTTP timeout (default: 30)
    - WEBHOOK_SCHEDULER_DEFAULT_MAX_RETRIES: used when a job spec omits maxRetries (default: 3)
    - WEBHOOK_SCHEDULER_TIMEZONE: zone of incoming scheduledDate/scheduledTime (default: UTC)

    Servers:
    - WEBHOOK_SCHEDULER_API_HOST / WEBHOOK_SCHEDULER_API_PORT (default: 0.0.0.0:3001)
    - WEBHOOK_SCHEDULER_MCP_HOST / WEBHOOK_SCHEDULER_MCP_PORT (default: 0.0.0.0:8010)

    Logging:
    - WEBHOOK_SCHEDULER_LOG_LEVEL (default: INFO)
    """

    database_url: str
    enabled: bool
    tick_seconds: int
    max_concurrency: int

    delivery_timeout_seconds: int
    default_max_retries: int
    timezone: str

    api_host: str
    api_port: int
    mcp_host: str
    mcp_port: int

    log_level: str

    @classmethod
    def from_env(cls) -> "SchedulerConfig":
        db_url = env_first(
            "WEBHOOK_SCHEDULER_DATABASE_URL",
            "PLATFORM_DATABASE_URL",
            "DATABASE_URL",
        )
        if not db_url:
            # Default sqlite path under the app directory's data/.
            app_root = Path(__file__).resolve().parents[2]
            data_dir = app_root / "data"
            data_dir.mkdir(parents=True, exist_ok=True)
            db_url = f"sqlite:///{(data_dir / 'webhooks.db').as_posix()}"

        return cls(
            database_url=db_url,
            enabled=env_bool("WEBHOOK_SCHEDULER_ENABLED", True),
            tick_seconds=env_int("WEBHOOK_SCHEDULER_TICK_SECONDS", 60, minimum=1),
            max_concurrency=env_int("WEBHOOK_SCHEDULER_MAX_CONCURRENCY", 4, minimum=1),
            delivery_timeout_seconds=env_int("WEBHOOK_SCHEDULER_DELIVERY_TIMEOUT_SECONDS", 30, minimum=1),
            default_max_retries=env_int("WEBHOOK_SCHEDULER_DEFAULT_MAX_RETRIES", 3, minimum=0),
            timezone=env_str("WEBHOOK_SCHEDULER_TIMEZONE", "UTC"),
            api_host=env_str("WEBHOOK_SCHEDULER_API_HOST", "0.0.0.0"),
            api_port=env_int("WEBHOOK_SCHEDULER_API_PORT", 3001),
            mcp_host=env_str("WEBHOOK_SCHEDULER_MCP_HOST", "0.0.0.0"),
            mcp_port=env_int("WEBHOOK_SCHEDULER_MCP_PORT", 8010),
            log_level=env_str("WEBHOOK_SCHEDULER_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="[%(asctime)s: %(levelname)s/%(name)s] %(message)s",
    )
