"""
Response models for the docs-embed-mcp tool surface.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .base import strict_config
from .domain import OperationError, OperationStatus


class EmbedResponse(BaseModel):
    """
    Response for the embed tool.

    ``created`` is False when the request joined an in-flight job for the same
    crate version, or when the collection was already embedded and nothing had
    to run (``operation_id`` is then None).
    """

    operation_id: str | None = Field(None, description="Operation ID to poll")
    status: OperationStatus | None = Field(
        None, description="Operation status at the time of the response"
    )
    created: bool = Field(..., description="Whether a new operation was started")
    message: str = Field(..., description="Human readable summary")

    model_config = strict_config


class OperationStatusResponse(BaseModel):
    """Snapshot of one tracked operation."""

    operation_id: str
    crate_name: str
    version: str
    features: list[str] = Field(default_factory=list)
    status: OperationStatus
    progress: str | None = None
    warnings: list[str] = Field(default_factory=list)
    error: OperationError | None = None
    document_count: int | None = None
    created_at: datetime
    completed_at: datetime | None = None

    model_config = strict_config


class QueryResult(BaseModel):
    """
    Individual result from a similarity query.
    """

    score: float = Field(..., description="Similarity score, higher is better")
    snippet: str = Field(..., description="Matched documentation chunk")
    source_path: str = Field(..., description="Full path to the documented item")
    kind: str = Field(..., description="Item kind (function, type, trait, ...)")
    title: str = Field(..., description="Item title")

    model_config = strict_config


class QueryResponse(BaseModel):
    crate_name: str
    version: str
    features: list[str] = Field(default_factory=list)
    results: list[QueryResult] = Field(default_factory=list)

    model_config = strict_config


class EmbeddedCollection(BaseModel):
    crate_name: str
    version: str
    features: list[str] = Field(default_factory=list)
    document_count: int
    embedded_at: datetime
    embedding_model: str | None = None

    model_config = strict_config


class ListEmbeddedResponse(BaseModel):
    collections: list[EmbeddedCollection] = Field(default_factory=list)

    model_config = strict_config


class QueryFeaturesResponse(BaseModel):
    """Features a crate version declares, and the embedded ones if any."""

    crate_name: str
    version: str
    available_features: list[str] = Field(default_factory=list)
    embedded_features: list[str] | None = Field(
        None, description="Features of the embedded collection, None if not embedded"
    )

    model_config = strict_config


class DeleteEmbeddedResponse(BaseModel):
    crate_name: str
    version: str
    deleted: bool
    message: str

    model_config = strict_config


class HealthResponse(BaseModel):
    status: str = "healthy"
    service: str = "docs-embed-mcp"
    version: str
    active_operations: int = 0

    model_config = strict_config
