# wildyak/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"
    log_json: bool = False  # JSON log lines (production), coloured console otherwise

    # Message batching
    # "last"   - process only the last message of a batch (default)
    # "first"  - process only the first message of a batch
    # "single" - process every message in order, return the last result
    # "merge"  - let the channel formatter merge the batch into one message
    # "custom" - hand parsed messages to a caller-supplied message_parser
    default_message_strategy: str = "last"

    # Session persistence
    # "memory"   - process-local dict (dev, tests, single-process bots)
    # "postgres" - asyncpg-backed table, see session_table
    session_store: Literal["memory", "postgres"] = "memory"
    session_table: str = "yak_sessions"

    # Database (only used when session_store = "postgres")
    database_url: str | None = None
    pg_pool_min: int = 2
    pg_pool_max: int = 10
    pg_command_timeout: int = 60

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"

    def validate_required_for_production(self) -> list[str]:
        """Validate that required settings exist for production"""
        if not self.is_production:
            return []

        missing = []
        if self.session_store == "postgres" and not self.database_url:
            missing.append("database_url")
        return missing


def warn_on_risky_config(s: "Settings") -> list[str]:
    warnings: list[str] = []

    if s.is_production and s.session_store == "memory":
        warnings.append("prod: session_store=memory (sessions are lost on restart and not shared between workers).")

    if s.session_store == "postgres" and not s.database_url:
        warnings.append("session_store=postgres but database_url is not set.")

    if s.pg_pool_min > s.pg_pool_max:
        warnings.append(f"pg_pool_min={s.pg_pool_min} is greater than pg_pool_max={s.pg_pool_max}.")

    if not s.session_table.replace("_", "").isalnum():
        warnings.append(f"session_table={s.session_table!r} is not a plain identifier.")

    return warnings


def validate_or_warn(s: "Settings") -> list[str]:
    """
    In prod: enforce required settings (hard fail).
    In non-prod: warn only.

    Returns the warnings that were logged.
    """
    from wildyak.infra.logging_config import get_logger

    missing = s.validate_required_for_production()
    if missing:
        raise RuntimeError(f"Missing required settings for production: {', '.join(missing)}")

    warnings = warn_on_risky_config(s)
    logger = get_logger(__name__)
    for msg in warnings:
        logger.warning(f"[config] {msg}")
    return warnings


settings = Settings()
