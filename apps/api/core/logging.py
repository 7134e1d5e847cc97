"""
Logging setup shared by the API process and the Celery worker.

JSON lines in production (one object per record, `extra_fields` merged in),
a readable single-line format for local runs.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.config import settings

TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"

# Third-party loggers that are too chatty at INFO.
_QUIET_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "urllib3": logging.WARNING,
    "celery": logging.INFO,
}


class JSONFormatter(logging.Formatter):
    def __init__(self, process_name: str = "api"):
        super().__init__()
        self.process_name = process_name

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "process": self.process_name,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        extra = getattr(record, "extra_fields", None)
        if isinstance(extra, dict):
            entry.update(extra)

        return json.dumps(entry, default=str)


def _use_json(fmt: str) -> bool:
    return fmt == "json" or settings.ENVIRONMENT == "production"


def setup_logging(process_name: str = "api", level: Optional[str] = None, fmt: Optional[str] = None) -> logging.Logger:
    """
    Replace the root handlers with a single stdout handler.

    `level` and `fmt` default to LOG_LEVEL and LOG_FORMAT.
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    if _use_json(fmt or settings.LOG_FORMAT):
        handler.setFormatter(JSONFormatter(process_name))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()
    root.addHandler(handler)

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    return root
