# pbvault/config.py

import os
from dataclasses import dataclass, field
from datetime import timedelta
from functools import lru_cache

# =========================
# CONFIGURATION
# =========================

# PostgreSQL parts, used when PB_DATABASE_URL is not given
DB_USER = os.getenv("DB_USER", "pbvault")
DB_PASS = os.getenv("DB_PASS", "pbvault")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "pbvault")


def _default_database_url() -> str:
    return f"postgresql://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    database_url: str = field(default_factory=_default_database_url)
    pool_min: int = 2
    pool_max: int = 4
    connect_timeout: int = 10
    op_timeout: int = 5

    host: str = "localhost:8000"
    expire_hours: int = 24
    default_expire_hours: int = 24
    verify_window_minutes: int = 5

    recaptcha_enable: bool = False
    recaptcha_secret: str = ""
    master_key: str = ""
    encryption_secret: str = ""

    detect_abuse: bool = False
    blocked_patterns: tuple = ()
    max_paste_bytes: int = 1024 * 1024

    rate_limit: str = "20/minute"
    rate_limit_enable: bool = True
    sweep_interval: int = 300
    log_level: str = "INFO"

    def __post_init__(self):
        if self.pool_min < 0 or self.pool_max < max(self.pool_min, 1):
            raise ValueError("pool bounds must satisfy 0 <= min <= max and max >= 1")
        if self.expire_hours < 1:
            raise ValueError("expire hours must be at least 1")
        if self.default_expire_hours > self.expire_hours:
            object.__setattr__(self, "default_expire_hours", self.expire_hours)

    @property
    def verify_window(self) -> timedelta:
        return timedelta(minutes=self.verify_window_minutes)


def load_settings() -> Settings:
    """Build Settings from PB_* environment variables."""
    expire_hours = _env_int("PB_EXPIRE_HRS", 24)
    patterns = os.getenv("PB_BLOCKED_PATTERNS", "")
    return Settings(
        database_url=os.getenv("PB_DATABASE_URL") or _default_database_url(),
        pool_min=_env_int("PB_POOL_MIN", 2),
        pool_max=_env_int("PB_POOL_MAX", 4),
        connect_timeout=_env_int("PB_CONNECT_TIMEOUT", 10),
        op_timeout=_env_int("PB_OP_TIMEOUT", 5),
        host=os.getenv("PB_HOST", "localhost:8000"),
        expire_hours=expire_hours,
        default_expire_hours=_env_int("PB_DEFAULT_EXPIRE_HRS", expire_hours),
        verify_window_minutes=_env_int("PB_VERIFY_WINDOW_MIN", 5),
        recaptcha_enable=_env_bool("PB_RECAPTCHA_ENABLE", False),
        recaptcha_secret=os.getenv("PB_RECAPTCHA_SECRET", ""),
        master_key=os.getenv("PB_MASTER_KEY", ""),
        encryption_secret=os.getenv("PB_ENCRYPTION_SECRET", ""),
        detect_abuse=_env_bool("PB_DETECT_ABUSE", False),
        blocked_patterns=tuple(p.strip() for p in patterns.split(",") if p.strip()),
        max_paste_bytes=_env_int("PB_MAX_PASTE_BYTES", 1024 * 1024),
        rate_limit=os.getenv("PB_RATE_LIMIT", "20/minute"),
        rate_limit_enable=_env_bool("PB_RATE_LIMIT_ENABLE", True),
        sweep_interval=_env_int("PB_SWEEP_INTERVAL", 300),
        log_level=os.getenv("PB_LOG_LEVEL", "INFO"),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()
