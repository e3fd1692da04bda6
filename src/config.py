from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    log_level: str = "INFO"
    timezone: str = "Europe/Kiev"
    public_url: str = ""
    redis_url: str = "redis://localhost:6379/0"

    # Telegram (notification channel).
    notification_channel: str = "telegram"
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    telegram_thread_id: int | None = None
    telegram_webhook_secret: str = ""

    # Wix Bookings (remote booking API).
    wix_client_id: str = ""
    wix_client_secret: str = ""
    wix_refresh_token: str = ""
    wix_api_key: str = ""
    wix_site_id: str = ""

    # Inbound booking webhook.
    webhook_secret: str = ""
    require_webhook_secret: bool = True
    event_id_header: str = "X-Wix-Event-Id"

    # Deduplication.
    dedup_backend: str = "memory"
    dedup_ttl_seconds: int = 900
    dedup_sweep_interval_seconds: int = 60

    # Status transitions.
    remote_timeout_seconds: float = 10.0
    cancel_reason_code: str = "OPERATOR_CANCELLED"
    control_outcomes: list[str] = ["paid", "cancelled"]

    notify_malformed_events: bool = True

    # GET /debug/services (lists Wix services; credential check).
    debug_endpoints_enabled: bool = True

    # Polling worker.
    polling_enabled: bool = False
    poll_interval_seconds: float = 60.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
