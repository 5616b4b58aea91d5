"""
Simple conversation service - Main Entry Point

Serves the conversation UI's backend: provider selection, streamed
assistant replies, and follow-up suggestion/decision extraction.

Usage:
    python -m simple_chat.main

Environment Variables:
    SIMPLE_HOST         - Server host (default: 0.0.0.0)
    SIMPLE_PORT         - Server port (default: 8000)
    LOG_LEVEL           - Logging level (default: INFO)
    OPENAI_API_KEY      - Enables the OpenAI provider
    ANTHROPIC_API_KEY   - Enables the Anthropic provider
    DEFAULT_AI_SERVICE  - Preferred active provider (default: openai)
    AI_USE_MOCK         - Force the offline mock provider
    AI_REQUEST_TIMEOUT  - Overall provider call timeout in seconds (default: 60)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import router as api_router
from .config import Config, config
from .conversation import Conversation
from .errors import ServiceNotInitializedError, UnknownModelError, UnknownServiceError
from .registry import ServiceRegistry, build_registry
from .store import ConversationStore

logger = logging.getLogger(__name__)


def create_app(cfg: Optional[Config] = None, registry: Optional[ServiceRegistry] = None) -> FastAPI:
    """
    Build the FastAPI app.

    The registry, conversation and store are created at startup and
    live on app.state for the lifetime of the process.
    """
    settings = cfg or config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application startup and shutdown lifecycle."""

        # Startup
        logger.info("=" * 60)
        logger.info("Simple Conversation Service Starting")
        logger.info("=" * 60)

        services = registry or build_registry(settings)
        conversation = Conversation(services)

        app.state.registry = services
        app.state.conversation = conversation
        app.state.store = ConversationStore(conversation)

        for info in services.describe():
            marker = " (active)" if info.active else ""
            logger.info(f"  - {info.id}: {info.name}, model={info.selected_model}{marker}")

        if not services.list_all():
            logger.warning("No AI services initialized - conversation turns will fail")

        logger.info("-" * 60)
        logger.info(f"Server ready at http://{settings.host}:{settings.port}")
        logger.info("=" * 60)

        yield

        # Shutdown
        logger.info("Shutting down...")
        await services.close()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Simple Conversation Service",
        description=(
            "Turns a conversation about an app idea into streamed replies, "
            "follow-up suggestions and categorized decisions."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.exception_handler(ServiceNotInitializedError)
    async def not_initialized_handler(request: Request, exc: ServiceNotInitializedError):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(UnknownModelError)
    async def unknown_model_handler(request: Request, exc: UnknownModelError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(UnknownServiceError)
    async def unknown_service_handler(request: Request, exc: UnknownServiceError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.get("/health")
    async def health(request: Request):
        """Health check endpoint."""
        services: ServiceRegistry = request.app.state.registry
        conversation: Conversation = request.app.state.conversation
        return {
            "status": "healthy",
            "active_provider": services.active_id,
            "providers": [p.id for p in services.describe()],
            "turn_state": conversation.state.value,
            "turns": conversation.turn_count,
        }

    @app.get("/")
    async def root():
        """Root endpoint with basic info."""
        return {
            "name": "Simple Conversation Service",
            "version": "0.1.0",
            "endpoints": {
                "conversation": "/v1/conversation",
                "messages": "/v1/conversation/messages",
                "providers": "/v1/providers",
                "health": "/health",
            },
        }

    return app


# Configure logging
logging.basicConfig(
    level=getattr(logging, config.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

app = create_app()


def main():
    """Run the conversation server."""
    uvicorn.run(
        "simple_chat.main:app",
        host=config.host,
        port=config.port,
        reload=False,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
