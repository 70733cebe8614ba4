import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str = "") -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    secret_key: str = os.getenv(
        "DJANGO_SECRET_KEY", "dev-only-secret-key-change-me-0123456789abcdef"
    )
    debug: bool = _env_bool("DJANGO_DEBUG")
    allowed_hosts: list[str] = field(default_factory=lambda: _env_list("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1"))
    db_host: str = os.getenv("DB_HOST", "")
    db_port: str = os.getenv("DB_PORT", "5432")
    db_user: str = os.getenv("DB_USER", "postgres")
    db_password: str = os.getenv("DB_PASSWORD", "")
    db_name: str = os.getenv("DB_NAME", "postgres")
    time_zone: str = os.getenv("TIME_ZONE", "UTC")
    media_root: str = os.getenv("MEDIA_ROOT", "media")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    submission_rate: str = os.getenv("SUBMISSION_RATE", "10/hour")
    max_upload_mb: int = int(os.getenv("MAX_UPLOAD_MB", "10"))
    max_calendar_days: int = int(os.getenv("MAX_CALENDAR_DAYS", "366"))

settings = Settings()
