"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..app import Application
from ..config import load_settings
from .routes import (
    create_agents_router,
    create_messages_router,
    create_observability_router,
    create_workflows_router,
)


def create_fastapi_app(
    application: Application | None = None, manage_lifecycle: bool = True
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        application: Application to serve. Built from load_settings() when omitted.
        manage_lifecycle: Start and stop the application with the server lifespan.
                          Pass False when the caller starts it (tests).
    """
    if application is None:
        application = Application(load_settings())

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        """Manage application lifespan."""
        if manage_lifecycle:
            await application.start()
        yield
        if manage_lifecycle:
            await application.stop()

    fastapi_app = FastAPI(
        title="agentflow API",
        description="Agent runtime and multi-agent workflow scheduler",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Enable CORS
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:5174"],  # Vite default
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    fastapi_app.include_router(create_agents_router(application))
    fastapi_app.include_router(create_workflows_router(application))
    fastapi_app.include_router(create_messages_router(application))
    fastapi_app.include_router(create_observability_router(application))
    fastapi_app.state.application = application

    return fastapi_app
