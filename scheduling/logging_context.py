"""Per-call request ids for log correlation.

``SchedulingAPI`` binds a fresh id at the start of every operation. The id
lives in a ContextVar, so it follows the call onto the worker thread that
``asyncio.to_thread`` runs it on, and every line the services and
repositories log for that call shows the same ``[REQ-...]`` tag.

``load_config`` installs ``LOG_FORMAT`` on the root logger and puts a
``RequestIdFilter`` on its handlers, which also see records from loggers
this package does not own (SQLAlchemy, asyncio).
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Iterable, Optional

NO_REQUEST_ID = "-"

LOG_FORMAT = "%(asctime)s [%(name)s] [%(request_id)s] %(levelname)s: %(message)s"

_request_id: ContextVar[str] = ContextVar("request_id", default=NO_REQUEST_ID)


def new_request_id() -> str:
    return f"REQ-{uuid.uuid4().hex[:8]}"


def bind_request_id(request_id: Optional[str] = None) -> str:
    """Bind ``request_id`` (or a new one) to the current context and return it."""
    request_id = request_id or new_request_id()
    _request_id.set(request_id)
    return request_id


def get_request_id() -> str:
    return _request_id.get()


class RequestIdFilter(logging.Filter):
    """Stamp ``record.request_id`` unless an upstream filter already did."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


def install_request_id_filter(handlers: Iterable[logging.Handler]) -> None:
    """Attach one ``RequestIdFilter`` to each handler that lacks it."""
    for handler in handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())


def get_request_logger(name: str) -> logging.Logger:
    """Module logger whose records carry ``request_id`` for any handler."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, RequestIdFilter) for f in logger.filters):
        logger.addFilter(RequestIdFilter())
    return logger
