"""Observability API routes."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from ...app import Application
from ...models import TraceEvent
from ..errors import to_http_exception


class TraceEventResponse(BaseModel):
    id: str
    event_type: str
    actor: str
    data: dict[str, Any]
    timestamp: datetime


class AgentStatsResponse(BaseModel):
    total_agents: int
    active_agents: int
    running_agents: int
    total_executions: int
    average_execution_time: float


def _parse_after(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid after timestamp: {value}") from None


def _event_to_dict(event: TraceEvent) -> dict:
    return {
        "id": event.id,
        "event_type": event.event_type,
        "actor": event.actor,
        "data": event.data,
        "timestamp": event.timestamp,
    }


def create_observability_router(app: Application) -> APIRouter:
    """Create observability router."""
    router = APIRouter(prefix="/api", tags=["observability"])

    @router.get("/trace-events", response_model=list[TraceEventResponse])
    async def get_trace_events(
        after: str | None = Query(None, description="Only events after this ISO timestamp"),
        event_type: list[str] | None = Query(None, description="Repeat to match several types"),
        actor: str | None = Query(None),
        limit: int = Query(100, ge=1, le=1000),
    ) -> list[dict]:
        """Persisted lifecycle events, newest first."""
        after_dt = _parse_after(after)
        await app.event_bus.drain()
        try:
            events = await app.storage.get_trace_events(
                after=after_dt, event_types=event_type, actor=actor, limit=limit
            )
        except Exception as e:
            raise to_http_exception(e) from e
        return [_event_to_dict(e) for e in events]

    @router.get("/trace-events/count")
    async def count_trace_events() -> dict:
        await app.event_bus.drain()
        return {"count": await app.storage.count_trace_events()}

    @router.get("/stats/agents", response_model=AgentStatsResponse)
    async def get_agent_stats() -> dict:
        stats = app.registry.get_stats()
        return {
            "total_agents": stats.total_agents,
            "active_agents": stats.active_agents,
            "running_agents": stats.running_agents,
            "total_executions": stats.total_executions,
            "average_execution_time": stats.average_execution_time,
        }

    @router.get("/health")
    async def health() -> dict:
        return {"status": "ok", "agents": len(app.registry)}

    return router
