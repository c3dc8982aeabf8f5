from dataclasses import dataclass
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    log_dir: Path
    log_level: str
    write_delay: float
    backup_interval: float


def _float_env(name: str, default: str) -> float:
    raw = os.getenv(name, default).strip()
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number of seconds, got {raw!r}")
    if value < 0:
        raise RuntimeError(f"{name} must not be negative, got {raw!r}")
    return value


def load_settings(env_file: Optional[str] = None) -> Settings:
    load_dotenv(env_file)

    data_raw = os.getenv("DESKPAD_DATA_DIR", "data").strip()
    log_raw = os.getenv("DESKPAD_LOG_DIR", "logs").strip()
    level = os.getenv("DESKPAD_LOG_LEVEL", "DEBUG").strip().upper()

    if not data_raw:
        raise RuntimeError("DESKPAD_DATA_DIR is empty")
    if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        raise RuntimeError(f"DESKPAD_LOG_LEVEL invalid: {level!r}")

    return Settings(
        data_dir=Path(data_raw),
        log_dir=Path(log_raw or "logs"),
        log_level=level,
        write_delay=_float_env("DESKPAD_WRITE_DELAY", "0"),
        backup_interval=_float_env("DESKPAD_BACKUP_INTERVAL", "300"),
    )
