"""
Logging setup for CourseCRM

Application logs go to the root logger. Audit-dispatch diagnostics go to the
"coursecrm.audit" logger and, when configured, to a rotating JSON file.
"""

import json
import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config import Settings

AUDIT_LOGGER_NAME = "coursecrm.audit"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_STANDARD_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "message",
    "taskName",
}


class AuditJSONFormatter(logging.Formatter):
    """JSON formatter for audit diagnostics"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_KEYS:
                log_entry[key] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def configure_logging(settings: Settings, audit_log_file: Optional[str] = None) -> None:
    """Configure root logging and the audit diagnostics channel"""
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)

    log_file = audit_log_file or settings.audit_log_file
    if not log_file:
        return

    audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
    # Prevent duplicate handlers when the app factory runs more than once
    if any(isinstance(h, RotatingFileHandler) for h in audit_logger.handlers):
        return

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_file,
        maxBytes=50 * 1024 * 1024,  # 50MB
        backupCount=5,
        encoding="utf-8",
    )
    handler.setFormatter(AuditJSONFormatter())
    audit_logger.addHandler(handler)
