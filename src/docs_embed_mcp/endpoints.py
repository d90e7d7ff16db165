"""API endpoint handlers for the docs-embed-mcp server."""

import logging

from fastapi import APIRouter, Request

from . import config
from .middleware import limiter
from .models import (
    DeleteEmbeddedRequest,
    DeleteEmbeddedResponse,
    EmbeddedCollection,
    EmbedRequest,
    EmbedResponse,
    HealthResponse,
    ListEmbeddedResponse,
    Operation,
    OperationStatusResponse,
    QueryFeaturesRequest,
    QueryFeaturesResponse,
    QueryRequest,
    QueryResponse,
    QueryStatusRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_services(request: Request):
    from .server import ensure_services  # noqa: PLC0415

    return ensure_services(request.app)


def operation_to_response(operation: Operation) -> OperationStatusResponse:
    return OperationStatusResponse(
        operation_id=operation.operation_id,
        crate_name=operation.identity.name,
        version=operation.identity.version,
        features=list(operation.identity.features),
        status=operation.status,
        progress=operation.progress,
        warnings=list(operation.warnings),
        error=operation.error,
        document_count=operation.document_count,
        created_at=operation.created_at,
        completed_at=operation.completed_at,
    )


# ===== Health Endpoints =====


@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health Check",
)
async def health_check(request: Request):
    """Report service status and the number of running embed operations."""
    services = get_services(request)
    return HealthResponse(
        version=config.VERSION,
        active_operations=services.embed.tracker.active_count,
    )


# ===== Tool Endpoints =====


@router.post(
    "/mcp/tools/embed",
    response_model=EmbedResponse,
    tags=["tools"],
    summary="Embed Crate Documentation",
    response_description="Operation handle to poll with query_status",
    operation_id="embed",
)
@limiter.limit(config.RATE_LIMIT)
async def embed(request: Request, params: EmbedRequest):
    """
    Build rustdoc JSON for a crate version and feature set, then embed it.

    Returns immediately with an operation id; poll `query_status` for progress.
    Unknown features and feature sets conflicting with an existing embedding
    are rejected before any work starts.

    **Note**: Building documentation may take several minutes for large crates.
    """
    services = get_services(request)
    result = await services.embed.start_embed(
        params.crate_name,
        version=params.version,
        features=params.features,
        overwrite=params.overwrite,
    )
    return EmbedResponse(
        operation_id=result.operation_id,
        status=result.status,
        created=result.created,
        message=result.message,
    )


@router.post(
    "/mcp/tools/query_status",
    response_model=OperationStatusResponse,
    tags=["tools"],
    summary="Query Operation Status",
    operation_id="query_status",
)
@limiter.limit(config.RATE_LIMIT)
async def query_status(request: Request, params: QueryStatusRequest):
    """Return the current snapshot of an embed operation."""
    services = get_services(request)
    return operation_to_response(services.embed.get_status(params.operation_id))


@router.post(
    "/mcp/tools/query",
    response_model=QueryResponse,
    tags=["tools"],
    summary="Semantic Documentation Query",
    response_description="Ranked documentation snippets",
    operation_id="query",
)
@limiter.limit(config.RATE_LIMIT)
async def query(request: Request, params: QueryRequest):
    """
    Search an embedded crate version by semantic similarity.

    Results are ordered by non-increasing similarity score.
    """
    services = get_services(request)
    return await services.query.query(
        params.query, params.crate_name, version=params.version, limit=params.limit
    )


@router.post(
    "/mcp/tools/list_embedded",
    response_model=ListEmbeddedResponse,
    tags=["tools"],
    summary="List Embedded Crates",
    operation_id="list_embedded",
)
@limiter.limit(config.RATE_LIMIT)
async def list_embedded(request: Request):
    """List every embedded crate version with its features and document count."""
    services = get_services(request)
    collections = await services.embed.list_embedded()
    return ListEmbeddedResponse(
        collections=[
            EmbeddedCollection(
                crate_name=metadata.identity.name,
                version=metadata.identity.version,
                features=list(metadata.features),
                document_count=metadata.document_count,
                embedded_at=metadata.embedded_at,
                embedding_model=metadata.embedding_model,
            )
            for metadata in collections
        ]
    )


@router.post(
    "/mcp/tools/query_features",
    response_model=QueryFeaturesResponse,
    tags=["tools"],
    summary="Query Crate Features",
    operation_id="query_features",
)
@limiter.limit(config.RATE_LIMIT)
async def query_features(request: Request, params: QueryFeaturesRequest):
    """List the features a crate version declares on crates.io."""
    services = get_services(request)
    version, available, metadata = await services.embed.query_features(
        params.crate_name, params.version
    )
    return QueryFeaturesResponse(
        crate_name=params.crate_name,
        version=version,
        available_features=available,
        embedded_features=list(metadata.features) if metadata else None,
    )


@router.post(
    "/mcp/tools/delete_embedded",
    response_model=DeleteEmbeddedResponse,
    tags=["tools"],
    summary="Delete Embedded Crate",
    operation_id="delete_embedded",
)
@limiter.limit(config.RATE_LIMIT)
async def delete_embedded(request: Request, params: DeleteEmbeddedRequest):
    """Irreversibly delete an embedded crate version."""
    services = get_services(request)
    await services.embed.delete_embedded(params.crate_name, params.version)
    return DeleteEmbeddedResponse(
        crate_name=params.crate_name,
        version=params.version,
        deleted=True,
        message=f"Deleted embedded documentation for {params.crate_name} v{params.version}",
    )
