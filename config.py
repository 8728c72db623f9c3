import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "chatroom"
    port: int = 5000
    # seconds without a heartbeat before a participant is evicted
    liveness_threshold: float = 10
    # seconds between two reaper scans
    sweep_interval: float = 15
    log_level: str = "INFO"


def _number(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    value = float(raw)
    if value <= 0:
        raise ValueError(f"{key} must be positive, got {raw!r}")
    return value


def load_settings() -> Settings:
    """Build settings from the environment (and .env, if present)."""
    return Settings(
        database_url=os.getenv("DATABASE_URL") or Settings.database_url,
        database_name=os.getenv("DATABASE_NAME") or Settings.database_name,
        port=int(os.getenv("PORT", Settings.port)),
        liveness_threshold=_number("LIVENESS_THRESHOLD", Settings.liveness_threshold),
        sweep_interval=_number("SWEEP_INTERVAL", Settings.sweep_interval),
        log_level=os.getenv("LOG_LEVEL", Settings.log_level),
    )
