"""Logging for herotree.

Everything logs under the ``herotree`` logger (``herotree.tree``,
``herotree.client``, ``herotree.poller``, ...). Two levels are added below
DEBUG/INFO for the refresh engine:

- VERBOSE (15): node changes (``app:123 changed: dynos/add-ons reconciled``)
- TRACE (5): every request and reconcile plan

``setup_logging`` installs one handler and can be called again when the
config is reloaded; the previous handler is replaced, not stacked.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO, TYPE_CHECKING

if TYPE_CHECKING:
    from herotree.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

LOG_ENV_VAR = "HEROTREE_LOG"

logger = logging.getLogger("herotree")

# Index is the -v count: 0 = errors only, 4 = every request
_VERBOSITY = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)

_handler: logging.Handler | None = None


class _LowercaseLevelFormatter(logging.Formatter):
    """``HH:MM:SS level: message`` with lowercase level names.

    Formats a copy of the record so other handlers (pytest's caplog, a
    host application's root handler) still see the original level name.
    """

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s: %(message)s", datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        local = logging.makeLogRecord(record.__dict__)
        local.levelname = record.levelname.lower()
        return super().format(local)


def resolve_level(config: LoggingConfig | None) -> int:
    """Pick the effective log level for a config.

    ``verbose`` (0-4, clamped) wins over ``level``. Unknown level names and a
    missing config mean INFO.
    """
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        return _VERBOSITY[max(0, min(config.verbose, len(_VERBOSITY) - 1))]
    if config.level:
        return logging.getLevelNamesMapping().get(config.level.upper(), logging.INFO)
    return logging.INFO


def setup_logging(
    config: LoggingConfig | None = None,
    stream: IO[str] | None = None,
) -> logging.Handler | None:
    """Route herotree logs according to ``config``.

    Destination, first match wins: ``config.file``, ``$HEROTREE_LOG``,
    ``stream``, stderr when it is a terminal. With none of those the logger
    only gets its level, so a host application's handlers still apply.

    Returns:
        The installed handler, or None.
    """
    global _handler

    level = resolve_level(config)
    logger.setLevel(level)
    reset_logging(keep_level=True)

    path = (config.file if config else None) or os.environ.get(LOG_ENV_VAR)
    handler: logging.Handler | None = None
    if path:
        try:
            handler = logging.FileHandler(os.path.expanduser(path), encoding="utf-8")
        except OSError as e:
            logger.warning("Cannot open log file %s: %s", path, e)
    if handler is None and stream is not None:
        handler = logging.StreamHandler(stream)
    if handler is None and sys.stderr.isatty():
        handler = logging.StreamHandler(sys.stderr)
    if handler is None:
        return None

    handler.setLevel(level)
    handler.setFormatter(_LowercaseLevelFormatter())
    logger.addHandler(handler)
    _handler = handler
    return handler


def reset_logging(keep_level: bool = False) -> None:
    """Remove the handler installed by ``setup_logging``."""
    global _handler
    if _handler is not None:
        logger.removeHandler(_handler)
        _handler.close()
        _handler = None
    if not keep_level:
        logger.setLevel(logging.NOTSET)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the herotree logger, or its child ``herotree.<name>``."""
    if name:
        return logger.getChild(name)
    return logger
