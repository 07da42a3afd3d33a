"""Unified logger with scoring-pass tracing."""
import logging
import uuid
from contextvars import ContextVar

from config.settings import LOG_LEVEL

pass_id_var: ContextVar[str] = ContextVar("pass_id", default="")

_base_factory = logging.getLogRecordFactory()


def _record_factory(*args, **kwargs):
    record = _base_factory(*args, **kwargs)
    record.pass_id = pass_id_var.get() or "-"
    return record


logging.setLogRecordFactory(_record_factory)


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter(
            "[%(asctime)s] [%(pass_id)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(fmt)
        logger.addHandler(handler)
        logger.setLevel(LOG_LEVEL.upper())
    return logger


def new_pass_id() -> str:
    """Start a new scoring pass; every record logged afterwards in this context carries its id."""
    pid = str(uuid.uuid4())[:8]
    pass_id_var.set(pid)
    return pid
