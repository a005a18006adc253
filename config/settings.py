from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Completion API ───────────────────────────────────────────────────────
    completion_api_key: str = ""
    completion_api_url: str = "https://api.blackbox.ai/chat/completions"
    completion_model_id: str = "blackboxai/anthropic/claude-sonnet-4"

    # ── Sampling ─────────────────────────────────────────────────────────────
    classifier_max_tokens: int = 500
    classifier_temperature: float = 0.1
    splitter_max_tokens: int = 1500
    splitter_temperature: float = 0.3

    # ── Retry / timeout ──────────────────────────────────────────────────────
    completion_timeout_seconds: float = 30.0
    completion_max_retries: int = 3
    completion_retry_base_delay: float = 1.0
    completion_retry_max_delay: float = 10.0
    completion_retry_jitter: float = 1.0

    # ── Issue tracker ────────────────────────────────────────────────────────
    tracker_timeout_seconds: float = 30.0

    # ── Persistence ──────────────────────────────────────────────────────────
    sqlite_db_path: str = "data/ticketflow.db"
    db_echo: bool = False

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    activity_log_path: str = "logs/activity.jsonl"
    llm_log_path: str = "logs/completion_calls.jsonl"

    # ── Scheduling ───────────────────────────────────────────────────────────
    # Daily tracker sweep, 07:00 CET
    sync_hour_utc: int = 6
    sync_minute_utc: int = 0

    # ── API server ───────────────────────────────────────────────────────────
    api_port: int = 8080


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
