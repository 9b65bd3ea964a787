"""JSON-lines logging for the lead engine.

Every module logs through ``logging.getLogger(__name__)`` with a dotted event
name as the message and the same name under ``extra["event"]``. The
formatter below folds those extra fields into one JSON object per line.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from app.core.config import get_config

SERVICE_NAME = "leadledger"

_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime", "taskName"}

# Field names that may carry provider credentials.
_SECRET_FIELDS = frozenset({"api_key", "x_api_key", "authorization", "password", "token"})

# Chatty third-party loggers held at WARNING outside development.
_QUIET_LOGGERS = ("sqlalchemy.engine", "urllib3", "redis")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        for key, value in vars(record).items():
            if key in _RESERVED_ATTRS or key in payload:
                continue
            payload[key] = "***" if key.lower() in _SECRET_FIELDS else value
        return json.dumps(payload, ensure_ascii=True, default=str)


def configure_logging(force: bool = False) -> None:
    """Install the JSON handlers on the root logger.

    A second call is a no-op unless ``force`` is set, so uvicorn reloads and
    repeated ``bootstrap()`` calls do not duplicate output.
    """
    config = get_config()
    root = logging.getLogger()
    if root.handlers and not force:
        return
    for handler in list(root.handlers):
        root.removeHandler(handler)

    root.setLevel(config.LOG_LEVEL)
    formatter = JsonFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.LOG_FILE:
        handlers.append(logging.FileHandler(config.LOG_FILE, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    if config.ENV != "development":
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
