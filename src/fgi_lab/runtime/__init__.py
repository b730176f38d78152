"""Runtime context exports."""

from fgi_lab.runtime.context import RunContext, create_run_context
from fgi_lab.runtime.logs import configure_logging

__all__ = [
    "RunContext",
    "configure_logging",
    "create_run_context",
]
