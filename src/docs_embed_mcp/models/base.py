"""
Base models and shared utilities for all model modules.

This module provides the foundation layer with common configurations
and the ErrorResponse model used across the application.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

# Base configuration used by all request/response models
strict_config = ConfigDict(extra="forbid")

# Domain records are immutable once built
frozen_config = ConfigDict(extra="forbid", frozen=True)


class ErrorResponse(BaseModel):
    """
    Standard error response format.

    Example:
        ```json
        {
            "error": "FeatureConflict",
            "detail": "Documentation for serde v1.0.200 already exists with different features",
            "status_code": 409
        }
        ```
    """

    error: str = Field(..., description="Error type/category")
    detail: str | None = Field(None, description="Detailed error message")
    status_code: int = Field(500, description="HTTP status code", ge=400, le=599)

    model_config = strict_config
