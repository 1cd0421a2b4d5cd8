"""Flow ID logging context for tracing one traveler across components.

Provides a flow_id-aware logger that attaches a correlation ID to every
log message, so a single search -> booking -> payment path can be
followed through the search engine, the orchestrators, and the poller.

Usage:
    from ticketflow.logging_context import get_flow_logger, new_flow_id

    new_flow_id()
    logger = get_flow_logger(__name__)
    logger.info("Submitting booking")  # record.flow_id == "FLOW-1a2b3c4d"
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Optional

_flow_id: ContextVar[str] = ContextVar("flow_id", default="NO_FLOW_ID")

LOG_FORMAT = "%(asctime)s [%(name)s] [%(flow_id)s] %(levelname)s: %(message)s"


def set_flow_id(flow_id: str) -> None:
    """Set the correlation ID for the current async context."""
    _flow_id.set(flow_id)


def get_flow_id() -> str:
    """Retrieve the current correlation ID."""
    return _flow_id.get()


def new_flow_id() -> str:
    """Generate, install, and return a fresh correlation ID."""
    flow_id = f"FLOW-{uuid.uuid4().hex[:8]}"
    _flow_id.set(flow_id)
    return flow_id


class FlowIdFilter(logging.Filter):
    """Injects flow_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.flow_id = _flow_id.get()  # type: ignore[attr-defined]
        return True


def get_flow_logger(name: str) -> logging.Logger:
    """Return a logger with the FlowIdFilter attached.

    The filter adds ``flow_id`` to each record so formatters can
    include ``%(flow_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, FlowIdFilter) for f in logger.filters):
        logger.addFilter(FlowIdFilter())
    return logger


def install_flow_id_filter(logger: Optional[logging.Logger] = None) -> None:
    """Attach a FlowIdFilter to every handler of ``logger`` (root by default).

    Handler filters also see records propagated from child loggers, so
    ``LOG_FORMAT`` can be used by any handler this has been applied to.
    """
    target = logger or logging.getLogger()
    for handler in target.handlers:
        if not any(isinstance(f, FlowIdFilter) for f in handler.filters):
            handler.addFilter(FlowIdFilter())
