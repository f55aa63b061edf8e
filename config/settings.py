"""Pydantic Settings — typed configuration with .env auto-loading."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from models.school import DEFAULT_SUBJECT


class Settings(BaseSettings):
    """Application configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    service_port: int = 5000
    cors_origins: list[str] = ["*"]
    debug: bool = False

    # ── Spreadsheet backend ──────────────────────────────────
    sheet_api_url: str = "https://script.google.com/macros/s/REPLACE_ME/exec"
    sheet_api_timeout: int = 15  # seconds
    use_mock_data: bool = False  # skip the remote load and start from sample data

    # ── Sync policy ──────────────────────────────────────────
    sync_retry_interval: int = 60  # seconds between retry-queue flushes
    sync_queue_limit: int = 500  # failed mutations kept for retry
    import_batch_size: int = 20  # students per importStudents request
    import_batch_delay: float = 0.3  # seconds between import batches

    # ── School ───────────────────────────────────────────────
    default_subject: str = DEFAULT_SUBJECT  # stored in Student.grades, others in gradesBySubject
    report_city: str = "Mojokerto"

    # Fallback passwords when settings from the backend carry none
    admin_password: str = "admin123"
    teacher_password: str = "guru123"

    # ── Login sessions ───────────────────────────────────────
    session_ttl: int = 8 * 3600  # seconds


@lru_cache
def get_settings() -> Settings:
    """Singleton accessor for application settings."""
    return Settings()
