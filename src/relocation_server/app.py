"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - Lifespan handler that loads question sets and wires the flow service once
  - CORS middleware
  - Global exception handlers (``FlowError`` → its status, anything else → 500)
  - All API routes mounted under ``/api/v1``
  - A ``/health`` endpoint for readiness probes

The ``cli()`` function is the ``relocation-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from relocation_db.engine import dispose_engine, get_engine
from relocation_flows.ai import AIGenerator, AnthropicBackend
from relocation_flows.conversation import ConversationMachine
from relocation_flows.dispatcher import GenerationDispatcher
from relocation_flows.errors import FlowError
from relocation_flows.evaluator import ConditionEvaluator
from relocation_flows.prompt import PromptManager
from relocation_flows.registry import QuestionSetRegistry
from relocation_flows.render import DocumentRenderer
from relocation_flows.service import FlowService
from relocation_flows.store import ArtifactStore, IdempotencyCache
from relocation_flows.templates import TemplateGenerator

from relocation_server.config import ServerSettings, load_settings
from relocation_server.errors import flow_error_handler, generic_error_handler
from relocation_server.routes import register_routes

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Wiring
# ------------------------------------------------------------------

def build_service(
    settings: ServerSettings,
    registry: QuestionSetRegistry,
    backend: AnthropicBackend | None = None,
) -> FlowService:
    """Assemble the flow service from its collaborators.

    Args:
        settings: server settings (API key, documents dir / URL)
        registry: an already-loaded question-set registry
        backend: completion backend override; built from the settings'
            Anthropic key if omitted
    """
    if backend is None:
        backend = AnthropicBackend(settings.anthropic_api_key)

    artifacts = ArtifactStore()
    idempotency = IdempotencyCache()
    dispatcher = GenerationDispatcher(
        AIGenerator(backend, registry, PromptManager()),
        TemplateGenerator(registry),
        artifacts,
        idempotency,
    )
    machine = ConversationMachine(registry, ConditionEvaluator(), dispatcher)

    return FlowService(
        registry,
        machine,
        artifacts,
        idempotency,
        DocumentRenderer(),
        documents_dir=Path(settings.documents_dir),
        documents_base_url=settings.documents_base_url,
    )


# ------------------------------------------------------------------
# Lifespan: runs once at startup/shutdown
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialise shared resources at startup, tear down on shutdown.

    Startup:
      1. Load the YAML question sets into a ``QuestionSetRegistry``
      2. Build the ``FlowService`` and its collaborators
      3. Stash them on ``app.state`` for dependency injection

    Shutdown:
      1. Dispose the database engine's connection pool
    """
    settings: ServerSettings = app.state.settings

    registry = QuestionSetRegistry(flows_dir=settings.flows_dir)
    registry.load()
    logger.info("QuestionSetRegistry loaded %d flows", len(registry.flow_types()))

    service = build_service(settings, registry)
    if not settings.anthropic_api_key:
        logger.info("ANTHROPIC_API_KEY not set; generation will use templates only")

    app.state.registry = registry
    app.state.service = service

    yield

    await dispose_engine()
    logger.info("Database engine disposed")


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """Build and return the configured FastAPI application."""
    if settings is None:
        settings = load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Relocation Flows API",
        description="Conversational guides and visa documents for members",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Read by the lifespan handler and the identity dependencies
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(FlowError, flow_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    @app.get("/health")
    async def health() -> dict:
        """Readiness probe — verifies DB connectivity."""
        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "ok"}
        except Exception as exc:
            logger.error("Health check failed: %s", exc)
            return {"status": "error", "detail": "database unavailable"}

    register_routes(app)

    return app


# ------------------------------------------------------------------
# Module-level ASGI export (for uvicorn relocation_server.app:app)
# ------------------------------------------------------------------
app = create_app()


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

def cli() -> None:
    """Console-script entry point: ``relocation-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "relocation_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
