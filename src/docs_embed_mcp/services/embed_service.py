"""Service layer for starting and running embed operations."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .. import config
from ..database.collections import CollectionManager, EmbedOutcome
from ..errors import (
    DocsEmbedError,
    FeatureConflict,
    ValidationFailure,
    wrap_unexpected,
)
from ..features import CratesIoClient, validate_features
from ..ingestion.chunker import Chunker
from ..ingestion.doc_builder import DocBuilder
from ..ingestion.embedding_client import EmbeddingClient
from ..ingestion.rustdoc_parser import parse_doc_export
from ..models.domain import (
    CollectionMetadata,
    EmbeddingRecord,
    Operation,
    OperationStatus,
    PackageIdentity,
)
from ..operations import OperationTracker

logger = logging.getLogger(__name__)


@dataclass
class EmbedStartResult:
    operation_id: str | None
    status: OperationStatus | None
    created: bool
    message: str


class EmbedService:
    """Validates embed requests and runs build, parse, chunk, embed and store jobs."""

    def __init__(
        self,
        registry: CratesIoClient,
        doc_builder: DocBuilder,
        collections: CollectionManager,
        embedder: EmbeddingClient,
        chunker: Chunker,
        tracker: OperationTracker,
        exclusive_groups: Iterable[Iterable[str]] = config.EXCLUSIVE_FEATURE_GROUPS,
        overwrite_default: bool = config.OVERWRITE_ON_REEMBED,
    ):
        self.registry = registry
        self.doc_builder = doc_builder
        self.collections = collections
        self.embedder = embedder
        self.chunker = chunker
        self.tracker = tracker
        self.exclusive_groups = [tuple(g) for g in exclusive_groups]
        self.overwrite_default = overwrite_default
        self._tasks: set[asyncio.Task] = set()

    async def resolve_identity(
        self, name: str, version: str | None, features: Iterable[str] | None
    ) -> PackageIdentity:
        """Resolve the version and validate features against the registry."""
        resolved = await self.registry.resolve_version(name, version)
        available = await self.registry.get_features(name, resolved)
        validated = validate_features(features, available, self.exclusive_groups)
        return PackageIdentity(name=name, version=resolved, features=validated)

    async def start_embed(
        self,
        name: str,
        version: str | None = None,
        features: Iterable[str] | None = (),
        overwrite: bool | None = None,
    ) -> EmbedStartResult:
        """Validate the request and start (or join) a background embed job.

        Validation failures and feature conflicts are raised here and never
        create an operation.
        """
        overwrite = self.overwrite_default if overwrite is None else overwrite
        identity = await self.resolve_identity(name, version, features)

        active = self.tracker.active_for(identity)
        if active is None:
            outcome = await self.collections.check_compatibility(identity, overwrite)
            if outcome is EmbedOutcome.ALREADY_EMBEDDED:
                return EmbedStartResult(
                    operation_id=None,
                    status=None,
                    created=False,
                    message=(
                        f"{identity} is already embedded; "
                        f"pass overwrite=true to re-embed"
                    ),
                )
        elif active.identity.features != identity.features:
            raise FeatureConflict(
                f"An operation for {identity.key} with features "
                f"[{', '.join(active.identity.features) or 'none'}] is already running",
                existing=active.identity.features,
                requested=identity.features,
            )

        operation, created = await self.tracker.create(identity)
        if created:
            task = asyncio.create_task(
                self._run(operation.operation_id, identity, overwrite)
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            message = f"Started embedding {identity}"
        else:
            message = f"Joined in-flight operation for {identity.key}"

        return EmbedStartResult(
            operation_id=operation.operation_id,
            status=operation.status,
            created=created,
            message=message,
        )

    async def _run(self, operation_id: str, identity: PackageIdentity, overwrite: bool):
        stage = "build"
        try:
            await self.tracker.mark_running(
                operation_id, progress="Building documentation"
            )
            raw = await self.doc_builder.build(identity)

            stage = "parse"
            await self.tracker.update_progress(operation_id, "Parsing documentation")
            parsed = await asyncio.to_thread(parse_doc_export, raw)
            if parsed.warnings:
                await self.tracker.add_warnings(operation_id, parsed.warnings)

            stage = "chunk"
            chunks = await asyncio.to_thread(self.chunker.chunk_units, parsed.units)

            stage = "embed"
            await self.tracker.update_progress(
                operation_id,
                f"Embedding {len(chunks)} chunks from {len(parsed.units)} items",
            )
            vectors = await self.embedder.embed([chunk.text for chunk in chunks])
            records = [
                EmbeddingRecord.build(identity, chunk, vector)
                for chunk, vector in zip(chunks, vectors)
            ]

            stage = "store"
            await self.tracker.update_progress(operation_id, "Storing collection")
            outcome = await self.collections.begin_embed(
                identity, records, overwrite=overwrite, dimension=self.embedder.dimension
            )

            if outcome is EmbedOutcome.ALREADY_EMBEDDED:
                metadata = await self.collections.get_metadata(identity)
                count = metadata.document_count if metadata else len(records)
                detail = f"{identity} was already embedded with {count} documents"
            else:
                count = len(records)
                detail = f"Embedded {count} documents for {identity}"
            await self.tracker.mark_succeeded(operation_id, count, detail)

        except DocsEmbedError as e:
            await self.tracker.mark_failed(operation_id, e.to_operation_error())
        except Exception as e:
            logger.exception(f"Unexpected error in operation {operation_id}")
            await self.tracker.mark_failed(
                operation_id, wrap_unexpected(e, stage).to_operation_error()
            )

    async def wait_idle(self):
        """Wait for every background job started so far to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def get_status(self, operation_id: str) -> Operation:
        return self.tracker.get(operation_id)

    async def list_embedded(self) -> list[CollectionMetadata]:
        return await self.collections.list_collections()

    async def query_features(
        self, name: str, version: str | None = None
    ) -> tuple[str, list[str], CollectionMetadata | None]:
        """Declared features of a crate version and its embedded collection, if any."""
        resolved = await self.registry.resolve_version(name, version)
        available = await self.registry.get_features(name, resolved)
        metadata = await self.collections.get_metadata(name, resolved)
        return resolved, available, metadata

    async def delete_embedded(self, name: str, version: str):
        identity = PackageIdentity(name=name, version=version)
        if self.tracker.active_for(identity) is not None:
            raise ValidationFailure(
                f"An embed operation for {identity.key} is still running"
            )
        await self.collections.delete_collection(name, version)
