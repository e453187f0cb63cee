"""Logging setup for the spawn_inputs command line tools."""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(timespec="seconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(level: str = "WARNING", json_output: bool = False) -> logging.Logger:
    """
    Attach a stderr handler to the `spawn_inputs` logger.

    Calling it again replaces the previous handler instead of stacking one.
    """
    logger = logging.getLogger("spawn_inputs")
    for handler in list(logger.handlers):
        if getattr(handler, "_spawn_inputs_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if json_output else logging.Formatter(LOG_FORMAT))
    handler._spawn_inputs_handler = True  # type: ignore[attr-defined]

    logger.addHandler(handler)
    logger.setLevel(level.upper())
    return logger
