from webhook_scheduler.scheduler.config import SchedulerConfig


def test_defaults(monkeypatch, tmp_path):
    for name in ("WEBHOOK_SCHEDULER_DATABASE_URL", "PLATFORM_DATABASE_URL", "DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("WEBHOOK_SCHEDULER_TICK_SECONDS", raising=False)

    cfg = SchedulerConfig.from_env()

    assert cfg.database_url.startswith("sqlite:///")
    assert cfg.database_url.endswith("/data/webhooks.db")
    assert cfg.tick_seconds == 60
    assert cfg.delivery_timeout_seconds == 30
    assert cfg.default_max_retries == 3
    assert cfg.enabled is True


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("WEBHOOK_SCHEDULER_DATABASE_URL", "postgresql://u:p@db/webhooks")
    monkeypatch.setenv("WEBHOOK_SCHEDULER_ENABLED", "off")
    monkeypatch.setenv("WEBHOOK_SCHEDULER_TICK_SECONDS", "5")
    monkeypatch.setenv("WEBHOOK_SCHEDULER_MAX_CONCURRENCY", "0")
    monkeypatch.setenv("WEBHOOK_SCHEDULER_DEFAULT_MAX_RETRIES", "not-a-number")
    monkeypatch.setenv("WEBHOOK_SCHEDULER_TIMEZONE", "Europe/Paris")

    cfg = SchedulerConfig.from_env()

    assert cfg.database_url == "postgresql://u:p@db/webhooks"
    assert cfg.enabled is False
    assert cfg.tick_seconds == 5
    assert cfg.max_concurrency == 1
    assert cfg.default_max_retries == 3
    assert cfg.timezone == "Europe/Paris"


def test_shared_database_url_fallback(monkeypatch):
    monkeypatch.delenv("WEBHOOK_SCHEDULER_DATABASE_URL", raising=False)
    monkeypatch.setenv("PLATFORM_DATABASE_URL", "  ")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///shared.db")

    assert SchedulerConfig.from_env().database_url == "sqlite:///shared.db"
