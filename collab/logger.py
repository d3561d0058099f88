# ============================================
#   CodeCollab — Logging
#   collab.<module> loggers + room-scoped adapter
# ============================================

import os
import logging
from logging.handlers import TimedRotatingFileHandler

from collab.config import (
    ENV,
    LOG_DIR,
    LOG_FILE,
    LOG_LEVEL,
    LOG_RETENTION_DAYS,
    LOG_TO_CONSOLE,
)

ROOT_LOGGER_NAME = "collab"

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s | %(message)s"
_DATEFMT = "%Y-%m-%dT%H:%M:%S"


def _build_handlers():
    handlers = []

    # pytest captures through the root logger; no files during tests
    if ENV != "test":
        os.makedirs(LOG_DIR, exist_ok=True)
        handlers.append(TimedRotatingFileHandler(
            LOG_FILE,
            when="midnight",
            backupCount=LOG_RETENTION_DAYS,
            encoding="utf-8",
        ))

    if LOG_TO_CONSOLE:
        handlers.append(logging.StreamHandler())

    return handlers


def _collab_logger() -> logging.Logger:
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    if getattr(logger, "_collab_configured", False):
        return logger

    logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))

    formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)
    handlers = _build_handlers()
    for h in handlers:
        h.setFormatter(formatter)
        logger.addHandler(h)

    # Without own handlers, records reach the root logger (and pytest's caplog)
    logger.propagate = not handlers
    logger._collab_configured = True
    return logger


def get_logger(module_name: str) -> logging.Logger:
    """collab.<module_name>, e.g. get_logger("events") -> collab.events"""
    return _collab_logger().getChild(module_name)


class RoomLogAdapter(logging.LoggerAdapter):
    """
    Prefixes every record with the room and connection it concerns:

        room=3fa9c2d1 sid=Xk2... | "Alice" joined (admitted)
    """

    def process(self, msg, kwargs):
        room = self.extra.get("room_id") or "-"
        sid = self.extra.get("sid") or "-"
        return f"room={room} sid={sid} | {msg}", kwargs


def room_logger(module: str, room_id=None, sid=None) -> RoomLogAdapter:
    return RoomLogAdapter(get_logger(module), {"room_id": room_id, "sid": sid})


# -----------------------------------------
#   Shorthands: log_xxx("module", "message")
# -----------------------------------------
def log_info(module: str, message: str):
    get_logger(module).info(message)


def log_warning(module: str, message: str):
    get_logger(module).warning(message)


def log_error(module: str, message: str):
    get_logger(module).error(message)


def log_exception(module: str, message: str):
    """Call from inside an except block; the traceback is attached."""
    get_logger(module).exception(message)
