"""FastAPI application initialization and configuration for docs-embed-mcp."""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded

from . import config
from .database.collections import CollectionManager
from .errors import DocsEmbedError
from .features import CratesIoClient
from .ingestion.chunker import Chunker
from .ingestion.doc_builder import CargoDocBuilder, DocBuilder, FileDocBuilder
from .ingestion.embedding_client import EmbeddingClient
from .middleware import (
    docs_embed_error_handler,
    limiter,
    rate_limit_handler,
    validation_exception_handler,
)
from .operations import OperationTracker
from .services import EmbedService, QueryService

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    embed: EmbedService
    query: QueryService
    registry: CratesIoClient


def build_doc_builder() -> DocBuilder:
    if config.EXPORT_DIR:
        logger.info(f"Loading doc exports from {config.EXPORT_DIR}")
        return FileDocBuilder(config.EXPORT_DIR)
    return CargoDocBuilder()


def build_default_services() -> AppServices:
    """Wire the production collaborators from configuration."""
    registry = CratesIoClient()
    collections = CollectionManager(config.COLLECTIONS_DIR, config.MODEL_NAME)
    embedder = EmbeddingClient(model_name=config.MODEL_NAME)
    embed = EmbedService(
        registry=registry,
        doc_builder=build_doc_builder(),
        collections=collections,
        embedder=embedder,
        chunker=Chunker(),
        tracker=OperationTracker(),
    )
    query = QueryService(registry=registry, collections=collections, embedder=embedder)
    return AppServices(embed=embed, query=query, registry=registry)


def ensure_services(app: FastAPI) -> AppServices:
    """Services attached to the app, built from configuration on first use.

    FastMCP drives the app over an in-process transport that skips the
    lifespan, so request handlers may be the first to need them.
    """
    if getattr(app.state, "services", None) is None:
        app.state.services = build_default_services()
        logger.info(f"Collections stored in {config.COLLECTIONS_DIR}")
    return app.state.services


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_services(app)
    yield
    await app.state.services.registry.close()


def create_app(services: AppServices | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance."""
    app = FastAPI(
        title="docs-embed-mcp",
        description="""
## docs-embed-mcp API

An MCP server that builds rustdoc JSON for a crate version and feature set,
embeds it with BAAI/bge-small-en-v1.5 and answers semantic queries over it.

### MCP Tools Available:
- `embed` - Start building and embedding a crate's documentation
- `query_status` - Poll an embed operation
- `query` - Semantic search within an embedded crate version
- `list_embedded` - List embedded crate versions and their features
- `query_features` - List the features a crate version declares
- `delete_embedded` - Remove an embedded crate version
        """.strip(),
        version=config.VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        openapi_tags=[
            {"name": "health", "description": "Health check endpoints"},
            {"name": "tools", "description": "MCP tool endpoints"},
        ],
        lifespan=lifespan,
    )
    app.state.services = services

    # Configure rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

    # Configure error handlers
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(DocsEmbedError, docs_embed_error_handler)

    from .endpoints import router

    app.include_router(router)

    return app


# Create the app instance
app = create_app()
