"""Error taxonomy for the embedding pipeline.

Every failure carries the pipeline stage it came from so that a failed
operation can report where and why it stopped.
"""

from __future__ import annotations

from .models.domain import OperationError


class DocsEmbedError(Exception):
    """Base class for all pipeline errors."""

    stage = "internal"

    def __init__(self, message: str, stage: str | None = None):
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage

    def to_operation_error(self) -> OperationError:
        return OperationError(
            kind=type(self).__name__, stage=self.stage, message=self.message
        )


class ValidationFailure(DocsEmbedError):
    """Requested features or parameters are invalid."""

    stage = "validate"


class BuildFailure(DocsEmbedError):
    """The documentation toolchain failed to produce a doc export."""

    stage = "build"


class ParseFailure(DocsEmbedError):
    """The doc-export root could not be parsed."""

    stage = "parse"


class EmbeddingFailure(DocsEmbedError):
    """The embedding collaborator failed after exhausting retries."""

    stage = "embed"


class TransientEmbeddingError(Exception):
    """Retryable embedding error (rate limiting, flaky network)."""


class FeatureConflict(DocsEmbedError):
    """A collection exists for name+version with a different feature set."""

    stage = "store"

    def __init__(self, message: str, existing: tuple[str, ...], requested: tuple[str, ...]):
        super().__init__(message)
        self.existing = existing
        self.requested = requested


class StoreFailure(DocsEmbedError):
    """The vector store is unavailable or inconsistent."""

    stage = "store"


class NotFound(DocsEmbedError):
    """Unknown operation id, crate, version or collection."""

    stage = "lookup"


class InvalidTransition(DocsEmbedError):
    """An operation was moved out of a state it cannot leave."""

    stage = "tracker"


def wrap_unexpected(exc: Exception, stage: str) -> DocsEmbedError:
    """Wrap a non-pipeline exception so it can be reported on an operation."""
    if isinstance(exc, DocsEmbedError):
        return exc
    return DocsEmbedError(f"{type(exc).__name__}: {exc}", stage=stage)
