import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent
ENV_PATH = BASE_DIR.parent / ".env"
load_dotenv(ENV_PATH)


@dataclass(frozen=True)
class Settings:
    database_url: str = f"sqlite:///{BASE_DIR.parent / 'taskcal.sqlite'}"
    timezone: str = "UTC"
    ledger_retention_days: int = 365
    search_horizon_days: int = 730
    prune_hour: int = 3
    log_level: str = "INFO"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL") or Settings.database_url,
        timezone=os.getenv("TZ") or Settings.timezone,
        ledger_retention_days=_int_env("LEDGER_RETENTION_DAYS", Settings.ledger_retention_days),
        search_horizon_days=_int_env("SEARCH_HORIZON_DAYS", Settings.search_horizon_days),
        prune_hour=_int_env("PRUNE_HOUR", Settings.prune_hour),
        log_level=(os.getenv("LOG_LEVEL") or Settings.log_level).upper(),
    )
