"""Versioned collection management.

One SQLite file per crate name and version. A collection is written into a
staging file and moved into place atomically, so readers only ever see a
complete collection or none at all.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sqlite3
from enum import Enum
from pathlib import Path

import sqlite_vec
import structlog

from .. import config
from ..errors import FeatureConflict, NotFound, StoreFailure
from ..models.domain import (
    CollectionMetadata,
    EmbeddingRecord,
    ItemKind,
    PackageIdentity,
    SearchHit,
    collection_name_for,
)
from .connection import (
    collection_path,
    open_collection,
    performance_timer,
    remove_quietly,
    staging_path,
)
from .schema import create_collection_schema, read_metadata, write_metadata

# Use structlog for structured logging when available, fallback to standard logging
try:
    logger = structlog.get_logger(__name__)
except AttributeError:
    logger = logging.getLogger(__name__)


class EmbedOutcome(str, Enum):
    CREATED = "created"
    OVERWRITTEN = "overwritten"
    ALREADY_EMBEDDED = "already_embedded"


class CollectionManager:
    """Owns the collection files and their metadata.

    Writes are serialized per collection by an asyncio.Lock registry; reads
    open the current file read-only and take no lock.
    """

    def __init__(
        self,
        collections_dir: str | Path = config.COLLECTIONS_DIR,
        embedding_model: str | None = config.MODEL_NAME,
    ):
        self.collections_dir = Path(collections_dir)
        self.embedding_model = embedding_model
        self._locks: dict[str, asyncio.Lock] = {}

    def _get_lock(self, collection_name: str) -> asyncio.Lock:
        if collection_name not in self._locks:
            self._locks[collection_name] = asyncio.Lock()
        return self._locks[collection_name]

    def path_for(self, name: str, version: str) -> Path:
        return collection_path(self.collections_dir, collection_name_for(name, version))

    async def _load_metadata(self, path: Path) -> CollectionMetadata | None:
        if not path.is_file():
            return None
        try:
            async with open_collection(path, with_vectors=False) as db:
                return await read_metadata(db)
        except sqlite3.Error as e:
            raise StoreFailure(f"Could not read collection {path.name}: {e}") from e

    async def get_metadata(
        self, identity: PackageIdentity | str, version: str | None = None
    ) -> CollectionMetadata | None:
        """Metadata for an identity, or for a name plus version."""
        if isinstance(identity, PackageIdentity):
            name, version = identity.name, identity.version
        else:
            name = identity
        if not version:
            raise ValueError("version is required to look up a collection")
        return await self._load_metadata(self.path_for(name, version))

    async def check_compatibility(
        self, identity: PackageIdentity, overwrite: bool = False
    ) -> EmbedOutcome:
        """Decide what embedding ``identity`` would do, without writing.

        Raises:
            FeatureConflict: A collection for the same name and version was
                embedded with a different feature set
        """
        existing = await self.get_metadata(identity)
        if existing is None:
            return EmbedOutcome.CREATED

        if existing.features != identity.features:
            existing_list = ", ".join(existing.features) or "none"
            requested_list = ", ".join(identity.features) or "none"
            raise FeatureConflict(
                f"{identity.name} v{identity.version} is already embedded with "
                f"features [{existing_list}]; requested [{requested_list}]. "
                f"Delete the existing collection to embed a different feature set.",
                existing=existing.features,
                requested=identity.features,
            )

        if overwrite:
            return EmbedOutcome.OVERWRITTEN
        return EmbedOutcome.ALREADY_EMBEDDED

    @performance_timer("begin_embed")
    async def begin_embed(
        self,
        identity: PackageIdentity,
        records: list[EmbeddingRecord],
        overwrite: bool = False,
        dimension: int | None = None,
    ) -> EmbedOutcome:
        """Store all records of ``identity`` as one collection, all or nothing."""
        async with self._get_lock(identity.collection_name):
            outcome = await self.check_compatibility(identity, overwrite)
            if outcome is EmbedOutcome.ALREADY_EMBEDDED:
                logger.info(f"{identity} already embedded, nothing to do")
                return outcome

            dimension = self._dimension_of(records, dimension)
            await self._write_collection(identity, records, dimension)
            logger.info(
                f"Stored {len(records)} records for {identity} ({outcome.value})"
            )
            return outcome

    @staticmethod
    def _dimension_of(records: list[EmbeddingRecord], dimension: int | None) -> int:
        if records:
            dimension = len(records[0].vector)
        dimension = dimension or config.EMBEDDING_DIM
        for record in records:
            if len(record.vector) != dimension:
                raise StoreFailure(
                    f"Inconsistent vector dimension {len(record.vector)}, "
                    f"expected {dimension}"
                )
        return dimension

    async def _write_collection(
        self,
        identity: PackageIdentity,
        records: list[EmbeddingRecord],
        dimension: int,
    ) -> None:
        try:
            self.collections_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreFailure(f"Cannot create {self.collections_dir}: {e}") from e

        staging = staging_path(self.collections_dir, identity.collection_name)
        final = collection_path(self.collections_dir, identity.collection_name)
        try:
            async with open_collection(staging, read_only=False) as db:
                await create_collection_schema(db, dimension)
                await db.executemany(
                    """
                    INSERT INTO chunks (
                        ordinal, source_path, kind, title, sequence, token_count, content
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            ordinal,
                            record.payload.source_path,
                            record.payload.kind.value,
                            record.payload.title,
                            record.chunk.sequence,
                            record.chunk.token_count,
                            record.chunk.text,
                        )
                        for ordinal, record in enumerate(records, start=1)
                    ],
                )
                await db.executemany(
                    "INSERT INTO vec_chunks (rowid, embedding) VALUES (?, ?)",
                    [
                        (ordinal, bytes(sqlite_vec.serialize_float32(record.vector)))
                        for ordinal, record in enumerate(records, start=1)
                    ],
                )
                await write_metadata(
                    db, identity, len(records), dimension, self.embedding_model
                )
                await db.commit()

            os.replace(staging, final)
        except (sqlite3.Error, OSError) as e:
            remove_quietly(staging)
            raise StoreFailure(
                f"Failed to write collection {identity.collection_name}: {e}"
            ) from e
        except BaseException:
            remove_quietly(staging)
            raise

    async def list_collections(self) -> list[CollectionMetadata]:
        """Metadata of every stored collection, sorted by name and version."""
        if not self.collections_dir.is_dir():
            return []

        collections = []
        for path in sorted(self.collections_dir.glob("*.db")):
            try:
                metadata = await self._load_metadata(path)
            except StoreFailure as e:
                logger.warning(f"Skipping unreadable collection: {e}")
                continue
            if metadata is not None:
                collections.append(metadata)

        collections.sort(key=lambda m: (m.identity.name, m.identity.version))
        return collections

    async def delete_collection(
        self, identity: PackageIdentity | str, version: str | None = None
    ) -> None:
        """Irreversibly remove a collection.

        Raises:
            NotFound: No collection exists for the name and version
        """
        if isinstance(identity, PackageIdentity):
            name, version = identity.name, identity.version
        else:
            name = identity
        collection_name = collection_name_for(name, version)

        async with self._get_lock(collection_name):
            path = collection_path(self.collections_dir, collection_name)
            if not path.is_file():
                raise NotFound(f"No embedded collection for {name} v{version}")
            try:
                path.unlink()
            except OSError as e:
                raise StoreFailure(f"Could not delete {path.name}: {e}") from e
            logger.info(f"Deleted collection {collection_name}")

    @performance_timer("search")
    async def search(
        self, identity: PackageIdentity, query_vector: list[float], limit: int
    ) -> list[SearchHit]:
        """Nearest chunks by cosine similarity, ties broken by chunk ordinal.

        Raises:
            NotFound: The collection does not exist
            StoreFailure: Dimension mismatch or an unreadable collection
        """
        path = self.path_for(identity.name, identity.version)
        if not path.is_file():
            raise NotFound(
                f"{identity.name} v{identity.version} has not been embedded"
            )

        try:
            async with open_collection(path) as db:
                metadata = await read_metadata(db)
                if metadata is None:
                    raise StoreFailure(f"Collection {path.name} has no metadata")
                if len(query_vector) != metadata.vector_dimension:
                    raise StoreFailure(
                        f"Query vector dimension {len(query_vector)} does not match "
                        f"collection dimension {metadata.vector_dimension}"
                    )
                if metadata.document_count == 0 or limit < 1:
                    return []

                k = min(limit, metadata.document_count)
                async with db.execute(
                    """
                    WITH knn AS (
                        SELECT rowid, distance
                        FROM vec_chunks
                        WHERE embedding MATCH ? AND k = ?
                    )
                    SELECT knn.distance, c.ordinal, c.content, c.source_path,
                           c.kind, c.title, c.sequence
                    FROM knn
                    JOIN chunks c ON c.ordinal = knn.rowid
                    ORDER BY knn.distance ASC, c.ordinal ASC
                    """,
                    (bytes(sqlite_vec.serialize_float32(query_vector)), k),
                ) as cursor:
                    rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise StoreFailure(f"Search failed on {path.name}: {e}") from e

        return [
            SearchHit(
                score=1.0 - distance,
                ordinal=ordinal,
                text=content,
                source_path=source_path,
                kind=ItemKind(kind),
                title=title,
                sequence=sequence,
            )
            for distance, ordinal, content, source_path, kind, title, sequence in rows
        ]
