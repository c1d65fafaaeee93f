"""Workflow scheduling: binder, limiter and scheduler."""

from .binder import bind_variables, find_placeholders, unresolved_placeholders
from .limiter import ConcurrencyLimiter
from .scheduler import WorkflowScheduler, WorkflowStats

__all__ = [
    "ConcurrencyLimiter",
    "WorkflowScheduler",
    "WorkflowStats",
    "bind_variables",
    "find_placeholders",
    "unresolved_placeholders",
]
