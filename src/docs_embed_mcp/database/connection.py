"""Database connection management and collection file paths."""

from __future__ import annotations

import functools
import logging
import time
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite
import sqlite_vec
import structlog

from ..config import DB_TIMEOUT

# Use structlog for structured logging when available, fallback to standard logging
try:
    logger = structlog.get_logger(__name__)
except AttributeError:
    logger = logging.getLogger(__name__)

STAGING_SUFFIX = ".tmp"


def performance_timer(operation_name: str):
    """Decorator logging the duration of an async database operation."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                elapsed_ms = (time.perf_counter() - start_time) * 1000
                logger.error(f"{operation_name} failed after {elapsed_ms:.2f}ms: {e}")
                raise
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            if elapsed_ms > 100:
                logger.warning(
                    f"{operation_name} took {elapsed_ms:.2f}ms (slow operation)"
                )
            else:
                logger.debug(f"{operation_name} completed in {elapsed_ms:.2f}ms")
            return result

        return wrapper

    return decorator


def collection_path(collections_dir: Path, collection_name: str) -> Path:
    """Final on-disk location of a collection."""
    return collections_dir / f"{collection_name}.db"


def staging_path(collections_dir: Path, collection_name: str) -> Path:
    """Unique hidden staging file for a collection write in progress."""
    return collections_dir / f".{collection_name}.{uuid.uuid4().hex}{STAGING_SUFFIX}"


def remove_quietly(path: Path) -> None:
    """Remove a staging file and any SQLite journal left beside it."""
    for candidate in (path, Path(f"{path}-journal"), Path(f"{path}-wal"), Path(f"{path}-shm")):
        try:
            candidate.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove {candidate}: {e}")


async def load_sqlite_vec_extension(db: aiosqlite.Connection) -> None:
    """Load the sqlite-vec extension for vector operations."""
    await db.enable_load_extension(True)
    await db.load_extension(sqlite_vec.loadable_path())
    await db.enable_load_extension(False)


@asynccontextmanager
async def open_collection(
    path: Path, *, read_only: bool = True, with_vectors: bool = True
) -> AsyncIterator[aiosqlite.Connection]:
    """Open a collection database, optionally read-only, with sqlite-vec loaded."""
    if read_only:
        target, uri = f"file:{path}?mode=ro", True
    else:
        target, uri = str(path), False

    async with aiosqlite.connect(target, timeout=DB_TIMEOUT, uri=uri) as db:
        if with_vectors:
            await load_sqlite_vec_extension(db)
        yield db


__all__ = [
    "STAGING_SUFFIX",
    "collection_path",
    "load_sqlite_vec_extension",
    "open_collection",
    "performance_timer",
    "remove_quietly",
    "staging_path",
]
