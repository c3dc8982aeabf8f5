import logging
from pathlib import Path
from typing import Union

LOGGER_NAME = "deskpad"

def setup_logger(log_dir: Union[str, Path] = "logs", level: str = "DEBUG") -> logging.Logger:
    """Setup debug logger that writes to <log_dir>/debug.log"""
    # Create logs directory if it doesn't exist
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    # Clear existing log file
    log_file = log_dir / "debug.log"
    if log_file.exists():
        log_file.unlink()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.DEBUG))

    # Drop handlers left over from a previous setup
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handler = logging.FileHandler(log_file)
    handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    logger.addHandler(handler)

    return logger

def get_logger(name: str) -> logging.Logger:
    """Child logger under the deskpad namespace, e.g. get_logger("store")."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
