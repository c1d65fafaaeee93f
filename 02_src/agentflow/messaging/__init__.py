"""Inter-agent messaging."""

from .bus import MessageBus

__all__ = ["MessageBus"]
