from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file.
    """

    # Notion
    notion_token: str = ""
    notion_timeout_ms: int = 90_000
    meetings_database_id: str = ""
    tasks_database_id: str = ""
    projects_database_id: str = ""

    # Classification
    classifier_provider: str = "anthropic"  # "anthropic" or "openai"
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    llm_model: str = "claude-sonnet-4-20250514"
    openai_model: str = "gpt-4o-mini"

    # Remote call pacing and retries
    rate_limit_delay_seconds: float = 0.35
    max_retries: int = 5
    backoff_base_seconds: float = 1.0
    backoff_cap_seconds: float = 10.0
    backoff_jitter_seconds: float = 1.0
    append_retry_attempts: int = 2
    append_retry_step_seconds: float = 3.0

    # Processing
    review_threshold: float = 0.6
    poll_interval_seconds: int = 300
    quick_entry_max_failures: int = 3  # 0 disables the cooldown
    quick_entry_cooldown_cycles: int = 5
    timezone: str = "America/New_York"

    # App config
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Gracefully handles missing .env files (e.g. in CI/testing) by falling
    back to environment variables and defaults.
    """
    try:
        return Settings()
    except Exception:
        # If .env is missing or unreadable, build settings from env vars only.
        return Settings(_env_file=None)  # type: ignore[call-arg]


settings = get_settings()
