"""Collection storage with SQLite and sqlite-vec."""

from __future__ import annotations

from .collections import CollectionManager, EmbedOutcome
from .connection import (
    collection_path,
    load_sqlite_vec_extension,
    open_collection,
    staging_path,
)
from .schema import create_collection_schema, read_metadata, write_metadata

__all__ = [
    "CollectionManager",
    "EmbedOutcome",
    "collection_path",
    "create_collection_schema",
    "load_sqlite_vec_extension",
    "open_collection",
    "read_metadata",
    "staging_path",
    "write_metadata",
]
