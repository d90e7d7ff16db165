"""Collection schema creation and metadata rows."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import aiosqlite
import structlog

from ..config import SCHEMA_VERSION
from ..models.domain import CollectionMetadata, PackageIdentity

# Use structlog for structured logging when available, fallback to standard logging
try:
    logger = structlog.get_logger(__name__)
except AttributeError:
    logger = logging.getLogger(__name__)


async def create_collection_schema(db: aiosqlite.Connection, dimension: int) -> None:
    """Create the chunk, vector and metadata tables of a fresh collection."""
    await db.execute("""
        CREATE TABLE chunks (
            ordinal INTEGER PRIMARY KEY,
            source_path TEXT NOT NULL,
            kind TEXT NOT NULL,
            title TEXT NOT NULL,
            sequence INTEGER NOT NULL,
            token_count INTEGER NOT NULL,
            content TEXT NOT NULL
        )
    """)

    await db.execute(f"""
        CREATE VIRTUAL TABLE vec_chunks USING vec0(
            embedding float[{dimension}] distance_metric=cosine
        )
    """)

    await db.execute("""
        CREATE TABLE collection_metadata (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            name TEXT NOT NULL,
            version TEXT NOT NULL,
            features TEXT NOT NULL,
            document_count INTEGER NOT NULL,
            embedded_at TEXT NOT NULL,
            schema_version INTEGER NOT NULL,
            vector_dimension INTEGER NOT NULL,
            embedding_model TEXT
        )
    """)

    await db.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
    logger.debug(f"Created collection schema with dimension {dimension}")


async def write_metadata(
    db: aiosqlite.Connection,
    identity: PackageIdentity,
    document_count: int,
    dimension: int,
    embedding_model: str | None,
) -> CollectionMetadata:
    metadata = CollectionMetadata(
        identity=identity,
        document_count=document_count,
        embedded_at=datetime.now(timezone.utc),
        schema_version=SCHEMA_VERSION,
        vector_dimension=dimension,
        embedding_model=embedding_model,
    )
    await db.execute(
        """
        INSERT INTO collection_metadata (
            id, name, version, features, document_count, embedded_at,
            schema_version, vector_dimension, embedding_model
        ) VALUES (1, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            identity.name,
            identity.version,
            json.dumps(list(identity.features)),
            document_count,
            metadata.embedded_at.isoformat(),
            metadata.schema_version,
            dimension,
            embedding_model,
        ),
    )
    return metadata


async def read_metadata(db: aiosqlite.Connection) -> CollectionMetadata | None:
    async with db.execute(
        """
        SELECT name, version, features, document_count, embedded_at,
               schema_version, vector_dimension, embedding_model
        FROM collection_metadata WHERE id = 1
        """
    ) as cursor:
        row = await cursor.fetchone()

    if row is None:
        return None

    name, version, features, count, embedded_at, schema, dimension, model = row
    return CollectionMetadata(
        identity=PackageIdentity(
            name=name, version=version, features=tuple(json.loads(features))
        ),
        document_count=count,
        embedded_at=datetime.fromisoformat(embedded_at),
        schema_version=schema,
        vector_dimension=dimension,
        embedding_model=model,
    )
