"""Tracking of long-running embed operations.

Every mutation happens under a single asyncio.Lock. Readers receive deep
copies, so a snapshot never changes after it is returned.
"""

import asyncio
import logging
import uuid
from collections import OrderedDict
from datetime import datetime, timezone

from . import config
from .errors import InvalidTransition, NotFound
from .models.domain import Operation, OperationError, OperationStatus, PackageIdentity

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    OperationStatus.PENDING: {OperationStatus.RUNNING, OperationStatus.FAILED},
    OperationStatus.RUNNING: {OperationStatus.SUCCEEDED, OperationStatus.FAILED},
    OperationStatus.SUCCEEDED: set(),
    OperationStatus.FAILED: set(),
}


def new_operation_id(name: str) -> str:
    return f"embed_{name}_{uuid.uuid4().hex}"


class OperationTracker:
    """Registry of embed operations with single-flight per crate version."""

    def __init__(self, history_limit: int = config.OPERATION_HISTORY):
        self.history_limit = max(1, history_limit)
        self._operations: OrderedDict[str, Operation] = OrderedDict()
        self._active: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def create(self, identity: PackageIdentity) -> tuple[Operation, bool]:
        """Register a Pending operation, or join the active one for the same key.

        Returns:
            Tuple[Operation, bool]: (snapshot, created)
        """
        async with self._lock:
            active_id = self._active.get(identity.key)
            if active_id is not None:
                logger.info(f"Joining in-flight operation {active_id} for {identity.key}")
                return self._operations[active_id].model_copy(deep=True), False

            operation = Operation(
                operation_id=new_operation_id(identity.name),
                identity=identity,
                created_at=datetime.now(timezone.utc),
            )
            self._operations[operation.operation_id] = operation
            self._active[identity.key] = operation.operation_id
            self._evict()
            logger.info(f"Created operation {operation.operation_id} for {identity}")
            return operation.model_copy(deep=True), True

    def _evict(self):
        excess = len(self._operations) - self.history_limit
        if excess <= 0:
            return
        for operation_id in list(self._operations):
            if excess <= 0:
                break
            if self._operations[operation_id].status.is_terminal:
                del self._operations[operation_id]
                excess -= 1

    def _require(self, operation_id: str) -> Operation:
        operation = self._operations.get(operation_id)
        if operation is None:
            raise NotFound(f"Unknown operation id: {operation_id}")
        return operation

    def _transition(self, operation: Operation, status: OperationStatus):
        if status not in ALLOWED_TRANSITIONS[operation.status]:
            raise InvalidTransition(
                f"Operation {operation.operation_id} cannot move from "
                f"{operation.status.value} to {status.value}"
            )
        operation.status = status
        if status.is_terminal:
            operation.completed_at = datetime.now(timezone.utc)
            self._active.pop(operation.identity.key, None)

    async def mark_running(self, operation_id: str, progress: str | None = None):
        async with self._lock:
            operation = self._require(operation_id)
            self._transition(operation, OperationStatus.RUNNING)
            if progress:
                operation.progress = progress

    async def update_progress(self, operation_id: str, progress: str):
        async with self._lock:
            operation = self._require(operation_id)
            if operation.status.is_terminal:
                raise InvalidTransition(
                    f"Operation {operation_id} is {operation.status.value}"
                )
            operation.progress = progress

    async def add_warnings(self, operation_id: str, warnings: list[str]):
        async with self._lock:
            operation = self._require(operation_id)
            if operation.status.is_terminal:
                raise InvalidTransition(
                    f"Operation {operation_id} is {operation.status.value}"
                )
            operation.warnings.extend(warnings)

    async def mark_succeeded(
        self, operation_id: str, document_count: int, detail: str | None = None
    ):
        async with self._lock:
            operation = self._require(operation_id)
            self._transition(operation, OperationStatus.SUCCEEDED)
            operation.document_count = document_count
            operation.progress = detail or f"Embedded {document_count} documents"
            logger.info(f"Operation {operation_id} succeeded: {operation.progress}")

    async def mark_failed(self, operation_id: str, error: OperationError):
        async with self._lock:
            operation = self._require(operation_id)
            self._transition(operation, OperationStatus.FAILED)
            operation.error = error
            logger.warning(
                f"Operation {operation_id} failed in {error.stage}: "
                f"{error.kind}: {error.message}"
            )

    def get(self, operation_id: str) -> Operation:
        """Snapshot of one operation; never awaits job work."""
        return self._require(operation_id).model_copy(deep=True)

    def list(self) -> list[Operation]:
        return [op.model_copy(deep=True) for op in self._operations.values()]

    def active_for(self, identity: PackageIdentity) -> Operation | None:
        operation_id = self._active.get(identity.key)
        if operation_id is None:
            return None
        return self._operations[operation_id].model_copy(deep=True)

    @property
    def active_count(self) -> int:
        return len(self._active)
