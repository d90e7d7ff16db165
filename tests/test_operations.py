"""Tests for the operation tracker."""

import asyncio
import re

import pytest

from docs_embed_mcp.errors import InvalidTransition, NotFound
from docs_embed_mcp.models.domain import OperationError, OperationStatus, PackageIdentity
from docs_embed_mcp.operations import OperationTracker


def identity(name="demo", version="1.0.0", features=()):
    return PackageIdentity(name=name, version=version, features=features)


@pytest.mark.asyncio
async def test_create_returns_pending_operation():
    tracker = OperationTracker()
    operation, created = await tracker.create(identity())

    assert created is True
    assert operation.status == OperationStatus.PENDING
    assert re.fullmatch(r"embed_demo_[0-9a-f]{32}", operation.operation_id)
    assert operation.completed_at is None


@pytest.mark.asyncio
async def test_concurrent_creates_coalesce():
    tracker = OperationTracker()
    results = await asyncio.gather(*(tracker.create(identity()) for _ in range(5)))

    ids = {op.operation_id for op, _ in results}
    assert len(ids) == 1
    assert sum(1 for _, created in results if created) == 1


@pytest.mark.asyncio
async def test_features_do_not_split_single_flight_key():
    tracker = OperationTracker()
    first, _ = await tracker.create(identity(features=("a",)))
    second, created = await tracker.create(identity(features=("b",)))

    assert created is False
    assert second.operation_id == first.operation_id


@pytest.mark.asyncio
async def test_new_operation_after_terminal():
    tracker = OperationTracker()
    first, _ = await tracker.create(identity())
    await tracker.mark_running(first.operation_id)
    await tracker.mark_succeeded(first.operation_id, 3)

    second, created = await tracker.create(identity())
    assert created is True
    assert second.operation_id != first.operation_id


@pytest.mark.asyncio
async def test_full_lifecycle():
    tracker = OperationTracker()
    operation, _ = await tracker.create(identity())
    op_id = operation.operation_id

    await tracker.mark_running(op_id, progress="Building documentation")
    assert tracker.get(op_id).status == OperationStatus.RUNNING

    await tracker.update_progress(op_id, "Embedding 3 chunks")
    await tracker.add_warnings(op_id, ["Unknown item reference 7"])
    await tracker.mark_succeeded(op_id, 3)

    snapshot = tracker.get(op_id)
    assert snapshot.status == OperationStatus.SUCCEEDED
    assert snapshot.document_count == 3
    assert snapshot.warnings == ["Unknown item reference 7"]
    assert snapshot.completed_at is not None
    assert tracker.active_for(identity()) is None


@pytest.mark.asyncio
async def test_illegal_transitions_raise():
    tracker = OperationTracker()
    operation, _ = await tracker.create(identity())
    op_id = operation.operation_id

    with pytest.raises(InvalidTransition):
        await tracker.mark_succeeded(op_id, 1)

    await tracker.mark_running(op_id)
    with pytest.raises(InvalidTransition):
        await tracker.mark_running(op_id)

    error = OperationError(kind="BuildFailure", stage="build", message="boom")
    await tracker.mark_failed(op_id, error)

    with pytest.raises(InvalidTransition):
        await tracker.mark_succeeded(op_id, 1)
    with pytest.raises(InvalidTransition):
        await tracker.update_progress(op_id, "late")
    with pytest.raises(InvalidTransition):
        await tracker.add_warnings(op_id, ["late"])


@pytest.mark.asyncio
async def test_pending_can_fail_directly():
    tracker = OperationTracker()
    operation, _ = await tracker.create(identity())
    error = OperationError(kind="DocsEmbedError", stage="build", message="no cargo")

    await tracker.mark_failed(operation.operation_id, error)
    assert tracker.get(operation.operation_id).status == OperationStatus.FAILED


@pytest.mark.asyncio
async def test_terminal_snapshot_is_stable():
    tracker = OperationTracker()
    operation, _ = await tracker.create(identity())
    await tracker.mark_running(operation.operation_id)
    error = OperationError(kind="ParseFailure", stage="parse", message="bad root")
    await tracker.mark_failed(operation.operation_id, error)

    snapshots = [tracker.get(operation.operation_id) for _ in range(5)]
    assert all(s == snapshots[0] for s in snapshots)
    assert snapshots[0].error == error


@pytest.mark.asyncio
async def test_snapshots_are_copies():
    tracker = OperationTracker()
    operation, _ = await tracker.create(identity())
    snapshot = tracker.get(operation.operation_id)
    snapshot.warnings.append("mutated")
    snapshot.status = OperationStatus.FAILED

    fresh = tracker.get(operation.operation_id)
    assert fresh.warnings == []
    assert fresh.status == OperationStatus.PENDING


def test_unknown_operation_is_not_found():
    tracker = OperationTracker()
    with pytest.raises(NotFound):
        tracker.get("embed_demo_missing")


@pytest.mark.asyncio
async def test_history_evicts_oldest_terminal_only():
    tracker = OperationTracker(history_limit=2)

    finished, _ = await tracker.create(identity("a"))
    await tracker.mark_running(finished.operation_id)
    await tracker.mark_succeeded(finished.operation_id, 1)

    running, _ = await tracker.create(identity("b"))
    await tracker.mark_running(running.operation_id)
    pending, _ = await tracker.create(identity("c"))

    remaining = {op.operation_id for op in tracker.list()}
    assert finished.operation_id not in remaining
    assert {running.operation_id, pending.operation_id} <= remaining

    # Active operations are never evicted, even over the limit
    extra, _ = await tracker.create(identity("d"))
    assert len(tracker.list()) == 3
    assert tracker.active_count == 3
    assert tracker.get(extra.operation_id).status == OperationStatus.PENDING
