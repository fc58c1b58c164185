"""Logging setup with run and agent context attached to every record."""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from .core.config import settings

_run_id: ContextVar[Optional[str]] = ContextVar("crewflow_run_id", default=None)
_agent_role: ContextVar[Optional[str]] = ContextVar("crewflow_agent_role", default=None)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [run=%(run_id)s agent=%(agent_role)s] %(message)s"


class RunContextFilter(logging.Filter):
    """
    Logging filter that adds run_id and agent_role to each record.

    The values come from context variables, so concurrent agents in the same
    event loop each log their own role.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _run_id.get() or "-"
        record.agent_role = _agent_role.get() or "-"
        return True


@contextmanager
def run_context(run_id: Optional[str] = None, role: Optional[str] = None) -> Iterator[None]:
    """Bind run_id and/or agent role for log records emitted inside the block."""
    tokens = []
    if run_id is not None:
        tokens.append((_run_id, _run_id.set(run_id)))
    if role is not None:
        tokens.append((_agent_role, _agent_role.set(role)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def current_run_id() -> Optional[str]:
    return _run_id.get()


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger for the engine.

    Args:
        level: Log level name; defaults to settings.LOG_LEVEL
    """
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RunContextFilter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel((level or settings.LOG_LEVEL).upper())

    # litellm and httpx are chatty at INFO
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
