"""
JSON logging for the composer service.

Every record is one JSON object on stdout (and optionally in a rotating log
file). The current job ID is carried in a ContextVar, so each composition
task tags its own log lines without passing the ID around.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from shared.config import settings

LOG_FILE_NAME = "composer.log"
LOG_FILE_MAX_BYTES = 100 * 1024 * 1024  # 100MB
LOG_FILE_BACKUPS = 5

job_id_context: ContextVar[Optional[str]] = ContextVar("job_id", default=None)

# LogRecord attributes that are not caller-supplied extras
RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Render a LogRecord and its extra fields as a JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "module": record.module,
            "message": record.getMessage(),
        }

        job_id = job_id_context.get()
        if job_id:
            entry["job_id"] = job_id

        for key, value in vars(record).items():
            if key in RESERVED_ATTRS or key.startswith("_"):
                continue
            entry[key] = value if isinstance(value, (str, int, float, bool, type(None))) else str(value)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def _file_handler() -> Optional[logging.Handler]:
    if not settings.log_dir:
        return None
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a JSON logger, configuring it on first use.

    Args:
        name: Logger name (e.g., "composer.process")

    Returns:
        Logger writing to stdout and, when LOG_DIR is set, a rotating file
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    handlers = [logging.StreamHandler(sys.stdout), _file_handler()]
    for handler in handlers:
        if handler is not None:
            handler.setFormatter(JSONFormatter())
            logger.addHandler(handler)

    return logger


def set_job_id(job_id: Optional[str]) -> None:
    """Tag subsequent log lines from the current task with job_id."""
    job_id_context.set(job_id)
