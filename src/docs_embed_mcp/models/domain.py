"""
Domain records for the embedding pipeline.

PackageIdentity, ContentUnit, Chunk, EmbeddingRecord, CollectionMetadata and
Operation flow between the parser, chunker, embedding client, collection
manager and operation tracker.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from .base import frozen_config, strict_config

_NON_IDENTIFIER = re.compile(r"[^A-Za-z0-9_]")


def normalize_features(features) -> tuple[str, ...]:
    """Strip, deduplicate and sort a feature list."""
    if not features:
        return ()
    return tuple(sorted({f.strip() for f in features if f and f.strip()}))


def collection_name_for(name: str, version: str) -> str:
    """Derive the storage collection name, e.g. ``serde_json_v1_0_200``."""
    return _NON_IDENTIFIER.sub("_", f"{name}_v{version}")


class PackageIdentity(BaseModel):
    """Name, version and normalized feature set of one documentation snapshot."""

    name: str
    version: str
    features: tuple[str, ...] = ()

    model_config = frozen_config

    @field_validator("name", "version", mode="before")
    @classmethod
    def strip_required(cls, v):
        if v is None or not str(v).strip():
            raise ValueError("name and version must be non-empty")
        return str(v).strip()

    @field_validator("features", mode="before")
    @classmethod
    def normalize(cls, v):
        return normalize_features(v)

    @property
    def key(self) -> str:
        """Single-flight and collection key; features are deliberately excluded."""
        return f"{self.name}@{self.version}"

    @property
    def collection_name(self) -> str:
        return collection_name_for(self.name, self.version)

    def __str__(self) -> str:
        features = ", ".join(self.features) if self.features else "no features"
        return f"{self.name} v{self.version} [{features}]"


class ItemKind(str, Enum):
    MODULE = "module"
    TYPE = "type"
    FUNCTION = "function"
    TRAIT = "trait"
    IMPL = "impl"
    MACRO = "macro"
    CONSTANT = "constant"
    OTHER = "other"


class ContentUnit(BaseModel):
    """One documented item's normalized text, before size-bounded splitting."""

    source_path: str
    kind: ItemKind
    title: str
    body: str
    parent_path: str | None = None

    model_config = frozen_config


class Chunk(BaseModel):
    """A size-bounded slice of a content unit's body; the unit of embedding."""

    unit: ContentUnit
    sequence: int = Field(..., ge=0)
    text: str
    token_count: int = Field(..., ge=1)

    model_config = frozen_config


class RecordPayload(BaseModel):
    name: str
    version: str
    features: tuple[str, ...] = ()
    source_path: str
    kind: ItemKind
    title: str

    model_config = frozen_config


class EmbeddingRecord(BaseModel):
    chunk: Chunk
    vector: list[float]
    payload: RecordPayload

    model_config = strict_config

    @classmethod
    def build(
        cls, identity: PackageIdentity, chunk: Chunk, vector: list[float]
    ) -> EmbeddingRecord:
        return cls(
            chunk=chunk,
            vector=[float(x) for x in vector],
            payload=RecordPayload(
                name=identity.name,
                version=identity.version,
                features=identity.features,
                source_path=chunk.unit.source_path,
                kind=chunk.unit.kind,
                title=chunk.unit.title,
            ),
        )


class CollectionMetadata(BaseModel):
    """Whole-record metadata for one stored collection."""

    identity: PackageIdentity
    document_count: int = Field(..., ge=0)
    embedded_at: datetime
    schema_version: int = 1
    vector_dimension: int = Field(..., ge=1)
    embedding_model: str | None = None

    model_config = frozen_config

    @property
    def features(self) -> tuple[str, ...]:
        return self.identity.features


class SearchHit(BaseModel):
    """A stored chunk matched by nearest-neighbour search."""

    score: float
    ordinal: int
    text: str
    source_path: str
    kind: ItemKind
    title: str
    sequence: int

    model_config = frozen_config


class OperationStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationStatus.SUCCEEDED, OperationStatus.FAILED)


class OperationError(BaseModel):
    kind: str
    stage: str
    message: str

    model_config = frozen_config


class Operation(BaseModel):
    """A tracked embed job; mutated only by the OperationTracker."""

    operation_id: str
    identity: PackageIdentity
    status: OperationStatus = OperationStatus.PENDING
    progress: str | None = None
    warnings: list[str] = Field(default_factory=list)
    error: OperationError | None = None
    document_count: int | None = None
    created_at: datetime
    completed_at: datetime | None = None

    model_config = strict_config
