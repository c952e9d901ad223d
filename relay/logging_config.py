"""Logging setup for the relay process."""
import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


def _log_dir() -> str | None:
    """RELAY_LOG_DIR, or ``logs/`` beside the package; "-" disables the file log."""
    configured = os.environ.get("RELAY_LOG_DIR", "")
    if configured == "-":
        return None
    return configured or os.path.join(os.path.dirname(__file__), "logs")


def setup_logging(name: str = "relay", level: str | None = None, log_name: str = "relay") -> logging.Logger:
    """Attach console + rotating-file handlers to the ``name`` logger once.

    Module loggers (``relay.cached_source``, ``relay.services.ucdp``...) propagate
    here. The level comes from ``level`` or RELAY_LOG_LEVEL. Uvicorn's access
    and error loggers share the same handlers so one file holds the whole
    request story.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    log_level = getattr(logging, (level or os.environ.get("RELAY_LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logger.setLevel(log_level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(formatter)
    handlers = [console]

    log_dir = _log_dir()
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, f"{log_name}.log"),
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUPS,
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    for handler in handlers:
        logger.addHandler(handler)
    for uvicorn_name in ("uvicorn.error", "uvicorn.access"):
        uv = logging.getLogger(uvicorn_name)
        for handler in handlers[1:]:
            uv.addHandler(handler)

    return logger
