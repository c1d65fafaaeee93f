"""Agent management API routes."""

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ...app import Application
from ...models import AgentCapabilities, AgentConfig, ProviderSettings
from ...runtime import IAgent
from ..errors import to_http_exception


class ProviderRequest(BaseModel):
    name: str = "anthropic"
    model: str | None = None
    temperature: float | None = Field(None, ge=0.0, le=1.0)
    max_tokens: int | None = Field(None, ge=1)


class CapabilitiesRequest(BaseModel):
    can_use_tool: bool = False
    can_communicate: bool = False
    can_make_decisions: bool = False
    can_learn: bool = False
    max_execution_time: float | None = None
    max_concurrent_tools: int | None = None


class CreateAgentRequest(BaseModel):
    """Request model for creating an agent from a full configuration."""

    id: str
    name: str
    role: str
    system_prompt: str
    description: str = ""
    provider: ProviderRequest = Field(default_factory=ProviderRequest)
    capabilities: CapabilitiesRequest = Field(default_factory=CapabilitiesRequest)
    tools: list[str] = Field(default_factory=list)
    settings: dict[str, Any] = Field(default_factory=dict)


class TemplateAgentRequest(BaseModel):
    """Request model for creating an agent from a template."""

    template_id: str
    id: str | None = None
    name: str | None = None
    role: str | None = None
    description: str | None = None
    system_prompt: str | None = None
    tools: list[str] | None = None


class AgentResponse(BaseModel):
    id: str
    name: str
    role: str
    description: str
    provider: str
    model: str
    tools: list[str]
    active: bool
    state: str
    total_executions: int


class AgentStatusResponse(BaseModel):
    id: str
    state: str
    execution_id: str | None
    total_executions: int
    successful_executions: int
    failed_executions: int
    average_execution_time: float


class TemplateResponse(BaseModel):
    id: str
    name: str
    description: str
    required_tools: list[str]
    tags: list[str]
    version: str


def _agent_to_dict(agent: IAgent) -> dict:
    config = agent.config
    status = agent.get_status()
    return {
        "id": config.id,
        "name": config.name,
        "role": config.role,
        "description": config.description,
        "provider": config.provider.name,
        "model": config.provider.model,
        "tools": list(config.tools),
        "active": config.active,
        "state": status.state.value,
        "total_executions": status.metrics.total_executions,
    }


def create_agents_router(app: Application) -> APIRouter:
    """Create agents router."""
    router = APIRouter(prefix="/api", tags=["agents"])

    @router.get("/agents", response_model=list[AgentResponse])
    async def list_agents() -> list[dict]:
        """List registered agents."""
        try:
            return [_agent_to_dict(agent) for agent in app.registry.list()]
        except Exception as e:
            raise to_http_exception(e) from e

    @router.post("/agents", response_model=AgentResponse, status_code=201)
    async def create_agent(request: CreateAgentRequest) -> dict:
        """Create and register an agent from a configuration."""
        try:
            config = AgentConfig(
                id=request.id,
                name=request.name,
                role=request.role,
                system_prompt=request.system_prompt,
                description=request.description,
                provider=ProviderSettings(
                    name=request.provider.name,
                    model=request.provider.model or app.settings.anthropic_model,
                    temperature=request.provider.temperature,
                    max_tokens=request.provider.max_tokens,
                ),
                capabilities=AgentCapabilities(**request.capabilities.model_dump()),
                tools=tuple(request.tools),
                settings=request.settings,
            )
            agent = app.agent_factory.create(config)
            await app.registry.register(agent)
            return _agent_to_dict(agent)
        except Exception as e:
            raise to_http_exception(e) from e

    @router.post("/agents/from-template", response_model=AgentResponse, status_code=201)
    async def create_agent_from_template(request: TemplateAgentRequest) -> dict:
        """Create and register an agent from a built-in or added template."""
        try:
            overrides = request.model_dump(exclude={"template_id"}, exclude_none=True)
            agent = app.agent_factory.create_from_template(request.template_id, **overrides)
            await app.registry.register(agent)
            return _agent_to_dict(agent)
        except Exception as e:
            raise to_http_exception(e) from e

    @router.get("/agents/templates", response_model=list[TemplateResponse])
    async def list_templates() -> list[dict]:
        return [
            {
                "id": t.id,
                "name": t.name,
                "description": t.description,
                "required_tools": list(t.required_tools),
                "tags": list(t.tags),
                "version": t.version,
            }
            for t in app.agent_factory.templates
        ]

    @router.get("/agents/{agent_id}/status", response_model=AgentStatusResponse)
    async def get_agent_status(agent_id: str) -> dict:
        status = app.registry.get_status(agent_id)
        if status is None:
            raise HTTPException(status_code=404, detail=f"Agent {agent_id} not found")
        return {
            "id": status.id,
            "state": status.state.value,
            "execution_id": status.execution_id,
            "total_executions": status.metrics.total_executions,
            "successful_executions": status.metrics.successful_executions,
            "failed_executions": status.metrics.failed_executions,
            "average_execution_time": status.metrics.average_execution_time,
        }

    @router.delete("/agents/{agent_id}", status_code=204)
    async def delete_agent(agent_id: str) -> None:
        """Stop and unregister an agent."""
        try:
            removed = await app.registry.unregister(agent_id)
        except Exception as e:
            raise to_http_exception(e) from e
        if not removed:
            raise HTTPException(status_code=404, detail=f"Agent {agent_id} not found")

    return router
