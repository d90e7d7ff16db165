"""
Request models for the docs-embed-mcp tool surface.

All models accept string-typed numbers and booleans for MCP client
compatibility; the validators coerce them before field validation.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from docs_embed_mcp import config as app_config
from docs_embed_mcp.validation import (
    coerce_to_bool_with_validation,
    coerce_to_int_with_bounds,
    validate_crate_name,
    validate_feature_list,
    validate_version_string,
)

from .base import strict_config


class EmbedRequest(BaseModel):
    """
    Request for the embed tool.

    Example:
        ```json
        {
            "crate_name": "serde",
            "version": "1.0.200",
            "features": ["derive"]
        }
        ```
    """

    crate_name: str = Field(
        ...,
        description="Crate name to generate and embed docs for",
        examples=["serde", "tokio"],
    )
    version: str | None = Field(
        None, description="Crate version (defaults to latest, '*' is accepted)"
    )
    features: list[str] = Field(
        default_factory=list,
        description="Cargo features to enable for documentation generation",
        examples=[["derive"], ["rt-multi-thread", "macros"]],
    )
    overwrite: bool | None = Field(
        None,
        description="Re-embed even when the same features are already embedded",
    )

    @field_validator("crate_name", mode="before")
    @classmethod
    def validate_crate(cls, v: Any) -> str:
        return validate_crate_name(v, field_name="crate_name")

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v: Any) -> str | None:
        return validate_version_string(v, field_name="version")

    @field_validator("features", mode="before")
    @classmethod
    def validate_features(cls, v: Any) -> list[str]:
        return validate_feature_list(v, field_name="features")

    @field_validator("overwrite", mode="before")
    @classmethod
    def coerce_overwrite(cls, v: Any) -> bool | None:
        if v is None:
            return None
        return coerce_to_bool_with_validation(v, field_name="overwrite")

    model_config = strict_config


class QueryStatusRequest(BaseModel):
    """Request for the query_status tool."""

    operation_id: str = Field(
        ...,
        min_length=1,
        description="Operation ID returned by embed",
        examples=["embed_serde_3f2a9c1e0b7d4c55a1f0e2d3c4b5a697"],
    )

    @field_validator("operation_id", mode="before")
    @classmethod
    def strip_operation_id(cls, v: Any) -> str:
        return str(v).strip() if v is not None else v

    model_config = strict_config


class QueryRequest(BaseModel):
    """
    Request for the query tool.

    Example:
        ```json
        {
            "query": "derive a serializer for a struct",
            "crate_name": "serde",
            "limit": "5"
        }
        ```
    """

    query: str = Field(
        ...,
        min_length=1,
        max_length=1000,
        description="Natural language query to search for in the embedded docs",
    )
    crate_name: str = Field(..., description="Crate name to search in")
    version: str | None = Field(
        None, description="Crate version (defaults to latest)"
    )
    limit: int = Field(
        app_config.DEFAULT_LIMIT,
        description=f"Number of results to return (1-{app_config.MAX_LIMIT})",
    )

    @field_validator("crate_name", mode="before")
    @classmethod
    def validate_crate(cls, v: Any) -> str:
        return validate_crate_name(v, field_name="crate_name")

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v: Any) -> str | None:
        return validate_version_string(v, field_name="version")

    @field_validator("limit", mode="before")
    @classmethod
    def coerce_limit(cls, v: Any) -> int:
        if v is None:
            return app_config.DEFAULT_LIMIT
        return coerce_to_int_with_bounds(
            v, field_name="limit", min_val=1, max_val=app_config.MAX_LIMIT
        )

    model_config = strict_config


class QueryFeaturesRequest(BaseModel):
    """Request for the query_features tool."""

    crate_name: str = Field(..., description="Crate name to query features for")
    version: str | None = Field(
        None, description="Crate version (defaults to latest)"
    )

    @field_validator("crate_name", mode="before")
    @classmethod
    def validate_crate(cls, v: Any) -> str:
        return validate_crate_name(v, field_name="crate_name")

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v: Any) -> str | None:
        return validate_version_string(v, field_name="version")

    model_config = strict_config


class DeleteEmbeddedRequest(BaseModel):
    """Request for the delete_embedded tool; the version is required."""

    crate_name: str = Field(..., description="Crate name of the collection")
    version: str = Field(..., description="Exact embedded version to delete")

    @field_validator("crate_name", mode="before")
    @classmethod
    def validate_crate(cls, v: Any) -> str:
        return validate_crate_name(v, field_name="crate_name")

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v: Any) -> str:
        version = validate_version_string(v, field_name="version")
        if version is None or version == "latest":
            raise ValueError("version must be an exact version to delete")
        return version

    model_config = strict_config
