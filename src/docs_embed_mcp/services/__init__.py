"""Service layer for docs-embed-mcp."""

from .embed_service import EmbedService, EmbedStartResult
from .query_service import QueryService

__all__ = [
    "EmbedService",
    "EmbedStartResult",
    "QueryService",
]
