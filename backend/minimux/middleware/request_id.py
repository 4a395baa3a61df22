"""
minimux: Request Correlation IDs
================================

What:  Generates the correlation ID attached to every Context and exposes the
       current one to loggers.
How:   The dispatch adapter calls new_request_id() for each request and binds
       the result to `request_id_var`. RequestIDLogFilter copies it onto every
       log record so formatters can print %(request_id)s.

Why a ContextVar:
    Requests run concurrently as tasks on one event loop. Each asyncio task
    gets its own copy of the context, so one request never sees another's ID.
"""

import logging
import uuid
from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    """Return a fresh random (version 4) UUID in its canonical 36-char form."""
    return str(uuid.uuid4())


class RequestIDLogFilter(logging.Filter):
    """Stamps `record.request_id` with the ID of the request being served ("-" outside one)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("") or "-"
        return True
