"""API routers."""

from .agents import create_agents_router
from .messages import create_messages_router
from .observability import create_observability_router
from .workflows import create_workflows_router

__all__ = [
    "create_agents_router",
    "create_messages_router",
    "create_observability_router",
    "create_workflows_router",
]
