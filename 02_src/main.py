"""Main entry point for agentflow."""

import uvicorn

from agentflow.api import create_fastapi_app
from agentflow.app import Application
from agentflow.config import load_settings
from agentflow.logging_config import setup_logging


def main():
    """Run the application."""
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_file, settings.log_format)

    # Create FastAPI app
    app = create_fastapi_app(Application(settings))

    # Run with uvicorn
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
