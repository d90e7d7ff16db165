"""Service layer for semantic queries over embedded collections."""

import logging

from .. import config
from ..database.collections import CollectionManager
from ..errors import NotFound, ValidationFailure
from ..features import LATEST_ALIASES, CratesIoClient
from ..ingestion.embedding_client import EmbeddingClient
from ..models.responses import QueryResponse, QueryResult

logger = logging.getLogger(__name__)


class QueryService:
    """Turns free text into ranked documentation snippets."""

    def __init__(
        self,
        registry: CratesIoClient,
        collections: CollectionManager,
        embedder: EmbeddingClient,
        max_limit: int = config.MAX_LIMIT,
    ):
        self.registry = registry
        self.collections = collections
        self.embedder = embedder
        self.max_limit = max_limit

    async def _resolve_version(self, name: str, version: str | None) -> str:
        if version is not None and version.strip() not in LATEST_ALIASES:
            return version.strip()
        return await self.registry.resolve_version(name, None)

    async def query(
        self,
        text: str,
        name: str,
        version: str | None = None,
        limit: int = config.DEFAULT_LIMIT,
    ) -> QueryResponse:
        """Search an embedded collection.

        Raises:
            ValidationFailure: Empty query text or a non-positive limit
            NotFound: The crate version has not been embedded
        """
        if not text or not text.strip():
            raise ValidationFailure("Query text must not be empty")
        if limit < 1:
            raise ValidationFailure(f"limit must be at least 1, got {limit}")
        limit = min(limit, self.max_limit)

        version = await self._resolve_version(name, version)
        metadata = await self.collections.get_metadata(name, version)
        if metadata is None:
            embedded = [
                m.identity.version
                for m in await self.collections.list_collections()
                if m.identity.name == name
            ]
            hint = (
                f" Embedded versions: {', '.join(embedded)}."
                if embedded
                else " Run embed first."
            )
            raise NotFound(f"{name} v{version} has not been embedded.{hint}")

        vector = await self.embedder.embed_query(text.strip())
        hits = await self.collections.search(metadata.identity, vector, limit)
        hits.sort(key=lambda h: (-h.score, h.ordinal))

        logger.debug(f"Query on {name} v{version} returned {len(hits)} results")
        return QueryResponse(
            crate_name=name,
            version=version,
            features=list(metadata.features),
            results=[
                QueryResult(
                    score=hit.score,
                    snippet=hit.text,
                    source_path=hit.source_path,
                    kind=hit.kind.value,
                    title=hit.title,
                )
                for hit in hits
            ],
        )
