"""
Models package for docs-embed-mcp.

Re-exports the domain, request and response models so callers can import
them from ``docs_embed_mcp.models``.
"""

from .base import ErrorResponse
from .domain import (
    Chunk,
    CollectionMetadata,
    ContentUnit,
    EmbeddingRecord,
    ItemKind,
    Operation,
    OperationError,
    OperationStatus,
    PackageIdentity,
    RecordPayload,
    SearchHit,
    collection_name_for,
    normalize_features,
)
from .requests import (
    DeleteEmbeddedRequest,
    EmbedRequest,
    QueryFeaturesRequest,
    QueryRequest,
    QueryStatusRequest,
)
from .responses import (
    DeleteEmbeddedResponse,
    EmbeddedCollection,
    EmbedResponse,
    HealthResponse,
    ListEmbeddedResponse,
    OperationStatusResponse,
    QueryFeaturesResponse,
    QueryResponse,
    QueryResult,
)

__all__ = [
    "Chunk",
    "CollectionMetadata",
    "ContentUnit",
    "DeleteEmbeddedRequest",
    "DeleteEmbeddedResponse",
    "EmbedRequest",
    "EmbedResponse",
    "EmbeddedCollection",
    "EmbeddingRecord",
    "ErrorResponse",
    "HealthResponse",
    "ItemKind",
    "ListEmbeddedResponse",
    "Operation",
    "OperationError",
    "OperationStatus",
    "OperationStatusResponse",
    "PackageIdentity",
    "QueryFeaturesRequest",
    "QueryFeaturesResponse",
    "QueryRequest",
    "QueryResponse",
    "QueryResult",
    "QueryStatusRequest",
    "RecordPayload",
    "SearchHit",
    "collection_name_for",
    "normalize_features",
]
