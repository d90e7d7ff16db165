"""Batched text embedding with bounded retries.

This module handles:
- Lazy loading of the fastembed model
- Running inference off the event loop via asyncio.to_thread
- Batching, ordering and dimension checks
- Retrying transient failures with exponential backoff (tenacity)
"""

import asyncio
import logging
import os
from collections.abc import Callable, Sequence

import numpy as np
from fastembed import TextEmbedding
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .. import config
from ..errors import EmbeddingFailure, TransientEmbeddingError

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (
    TransientEmbeddingError,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
)

# Global model instance (singleton pattern)
_embedding_model: TextEmbedding | None = None


def get_embedding_model(model_name: str = config.MODEL_NAME) -> TextEmbedding:
    """Get or create the fastembed model; loaded on first use, not at import."""
    global _embedding_model
    if _embedding_model is None:
        logger.info(f"Loading embedding model: {model_name}")

        # Reduce ONNX Runtime memory overhead for the small model
        os.environ["ORT_DISABLE_CPU_ARENA_ALLOCATOR"] = "1"
        os.environ["ORT_DISABLE_MEMORY_PATTERN"] = "1"

        _embedding_model = TextEmbedding(model_name=model_name)
    return _embedding_model


def fastembed_embed(texts: list[str]) -> list:
    """Default embedding function backed by fastembed."""
    return list(get_embedding_model().embed(texts))


class EmbeddingClient:
    """Turn texts into vectors, batch by batch, in input order.

    ``embed_fn`` is a blocking callable taking a list of texts and returning
    one vector per text; it runs in a worker thread.
    """

    def __init__(
        self,
        embed_fn: Callable[[list[str]], Sequence] | None = None,
        batch_size: int = config.EMBEDDING_BATCH_SIZE,
        max_attempts: int = config.EMBEDDING_MAX_ATTEMPTS,
        backoff_initial: float = config.EMBEDDING_BACKOFF_INITIAL,
        backoff_max: float = config.EMBEDDING_BACKOFF_MAX,
        model_name: str = config.MODEL_NAME,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._embed_fn = embed_fn or fastembed_embed
        self.batch_size = batch_size
        self.max_attempts = max(1, max_attempts)
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self.model_name = model_name
        self.dimension: int | None = None

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed texts, returning vectors in the same order.

        Raises:
            EmbeddingFailure: When a batch still fails after all retries, a
                non-transient error occurs, or the results are inconsistent
        """
        texts = list(texts)
        vectors: list[list[float]] = []
        for batch_index, start in enumerate(range(0, len(texts), self.batch_size)):
            batch = texts[start : start + self.batch_size]
            label = f"batch {batch_index} (items {start}-{start + len(batch) - 1})"
            vectors.extend(await self._embed_batch(batch, label))
        return vectors

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query string as a one-item batch."""
        vectors = await self.embed([text])
        return vectors[0]

    async def _embed_batch(self, batch: list[str], label: str) -> list[list[float]]:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.backoff_initial, max=self.backoff_max
            ),
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            reraise=False,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            f"Retrying embedding {label}, attempt "
                            f"{attempt.retry_state.attempt_number}/{self.max_attempts}"
                        )
                    raw = await asyncio.to_thread(self._embed_fn, batch)
        except RetryError as e:
            cause = e.last_attempt.exception()
            raise EmbeddingFailure(
                f"Embedding {label} failed after {self.max_attempts} attempts: {cause}"
            ) from cause
        except Exception as e:
            raise EmbeddingFailure(f"Embedding {label} failed: {e}") from e

        return self._validate(raw, batch, label)

    def _validate(self, raw, batch: list[str], label: str) -> list[list[float]]:
        try:
            matrix = [np.asarray(v, dtype=np.float32) for v in raw]
        except (TypeError, ValueError) as e:
            raise EmbeddingFailure(f"Embedding {label} returned non-numeric data: {e}") from e

        if len(matrix) != len(batch):
            raise EmbeddingFailure(
                f"Embedding {label} returned {len(matrix)} vectors for {len(batch)} texts"
            )

        vectors = []
        for vector in matrix:
            if vector.ndim != 1 or vector.size == 0:
                raise EmbeddingFailure(f"Embedding {label} returned a malformed vector")
            if self.dimension is None:
                self.dimension = int(vector.size)
            elif vector.size != self.dimension:
                raise EmbeddingFailure(
                    f"Embedding {label} returned dimension {vector.size}, "
                    f"expected {self.dimension}"
                )
            vectors.append(vector.tolist())
        return vectors
