"""
Logging setup for MovieLens OLAP.

Each CLI command calls ``configure_logging(config.logging, debug=config.debug)``
once, after the config is loaded and before the dataset is read.  Library
modules only create module loggers with ``logging.getLogger(__name__)``.

Records go to stderr, so report tables and menu prompts on stdout stay
readable, and every line names the thread that emitted it (the coordinator
is ``MainThread``; fold workers are ``fold_<n>``).

With ``json_format = true`` in ``[logging]`` each record is one JSON object::

    {"ts": "2026-10-18T14:03:11", "level": "DEBUG", "thread": "MainThread",
     "logger": "movielens_olap.engine.aggregation", "msg": "Parallel fold: ..."}
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from movielens_olap.config import LoggingConfig

TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Attribute names of a bare LogRecord; anything else was passed via ``extra=``.
_RESERVED = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record, with ``extra=`` fields at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "ts": self.formatTime(record, TIMESTAMP_FORMAT),
            "level": record.levelname,
            "thread": record.threadName,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(
            (key, val)
            for key, val in vars(record).items()
            if key not in _RESERVED and not key.startswith("_")
        )
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _handlers(config: "LoggingConfig") -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        path = Path(config.log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))
    return handlers


def configure_logging(config: "LoggingConfig", debug: bool = False) -> int:
    """Install handlers on the root logger.

    Args:
        config: ``[logging]`` section of ``AppConfig``.
        debug:  Force ``DEBUG`` regardless of ``config.level``.

    Returns:
        The effective numeric log level.
    """
    level = logging.DEBUG if debug else logging.getLevelName(config.level)
    formatter = (
        JsonLineFormatter()
        if config.json_format
        else logging.Formatter(TEXT_FORMAT, datefmt=TIMESTAMP_FORMAT)
    )
    handlers = _handlers(config)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=handlers, force=True)
    return level
