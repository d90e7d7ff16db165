"""Shared fixtures: temporary collections, fake collaborators and a sample doc export."""

import asyncio
import copy
import hashlib
import json

import pytest
import pytest_asyncio

from docs_embed_mcp.database.collections import CollectionManager
from docs_embed_mcp.errors import BuildFailure, NotFound
from docs_embed_mcp.ingestion.chunker import Chunker
from docs_embed_mcp.ingestion.doc_builder import DocBuilder
from docs_embed_mcp.ingestion.embedding_client import EmbeddingClient
from docs_embed_mcp.models.domain import Chunk, ContentUnit, EmbeddingRecord, ItemKind
from docs_embed_mcp.operations import OperationTracker
from docs_embed_mcp.services import EmbedService, QueryService

DIMENSION = 8


class CharTokenizer:
    """One token per character, so token counts equal string lengths."""

    def encode(self, text):
        return [ord(c) for c in text]

    def decode(self, tokens):
        return "".join(chr(t) for t in tokens)


def fake_embed(texts):
    """Deterministic embedding: identical texts get identical vectors."""
    vectors = []
    for text in texts:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        vectors.append([(b + 1) / 256 for b in digest[:DIMENSION]])
    return vectors


def make_records(identity, texts):
    """One single-chunk record per text, stored as ``<crate>::item<i>``."""
    vectors = fake_embed(texts)
    records = []
    for i, (text, vector) in enumerate(zip(texts, vectors)):
        unit = ContentUnit(
            source_path=f"{identity.name}::item{i}",
            kind=ItemKind.FUNCTION,
            title=f"item{i}",
            body=text,
        )
        chunk = Chunk(unit=unit, sequence=0, text=text, token_count=len(text))
        records.append(EmbeddingRecord.build(identity, chunk, vector))
    return records


class FakeRegistry:
    """In-memory stand-in for the crates.io client."""

    def __init__(self, crates=None):
        self.crates = crates or {
            "demo": {
                "latest": "1.0.0",
                "versions": {
                    "1.0.0": ["alpha", "beta", "default", "gamma"],
                    "0.9.0": ["default"],
                },
            }
        }

    async def resolve_version(self, name, version=None):
        if name not in self.crates:
            raise NotFound(f"Unknown crate {name}")
        if version is None or version.strip() in ("", "*", "latest"):
            return self.crates[name]["latest"]
        return version

    async def get_features(self, name, version=None):
        version = await self.resolve_version(name, version)
        versions = self.crates[name]["versions"]
        if version not in versions:
            raise NotFound(f"Unknown version {name} v{version}")
        return sorted(versions[version])

    async def close(self):
        pass


class InMemoryDocBuilder(DocBuilder):
    """Serves doc exports from a dict, optionally held back by a gate."""

    def __init__(self, exports):
        self.exports = exports
        self.gate = None
        self.calls = []

    def hold(self):
        self.gate = asyncio.Event()
        return self.gate

    async def build(self, identity):
        self.calls.append(identity)
        if self.gate is not None:
            await self.gate.wait()
        export = self.exports.get(identity.name)
        if export is None:
            raise BuildFailure(f"No export for {identity.name}")
        if isinstance(export, str):
            return export
        return json.dumps(export)


def make_sample_export():
    """A rustdoc JSON export for crate "demo" with three short documented items."""
    return {
        "root": "0",
        "crate_version": "1.0.0",
        "format_version": 39,
        "index": {
            "0": {
                "id": "0",
                "crate_id": 0,
                "name": "demo",
                "docs": None,
                "inner": {"module": {"is_crate": True, "items": ["1", "2", "3"]}},
            },
            "1": {
                "id": "1",
                "crate_id": 0,
                "name": "greet",
                "docs": "Say hello to someone by name.",
                "inner": {
                    "function": {
                        "sig": {
                            "inputs": [
                                [
                                    "name",
                                    {
                                        "borrowed_ref": {
                                            "lifetime": None,
                                            "is_mutable": False,
                                            "type": {"primitive": "str"},
                                        }
                                    },
                                ]
                            ],
                            "output": {
                                "resolved_path": {
                                    "path": "String",
                                    "id": "99",
                                    "args": None,
                                }
                            },
                        },
                        "generics": {"params": [], "where_predicates": []},
                        "header": {
                            "is_const": False,
                            "is_unsafe": False,
                            "is_async": False,
                        },
                    }
                },
            },
            "2": {
                "id": "2",
                "crate_id": 0,
                "name": "Widget",
                "docs": "A widget with a size.",
                "inner": {
                    "struct": {
                        "kind": {"plain": {"fields": ["4"], "has_stripped_fields": False}},
                        "generics": {"params": [], "where_predicates": []},
                        "impls": [],
                    }
                },
            },
            "3": {
                "id": "3",
                "crate_id": 0,
                "name": "MAX",
                "docs": "Maximum widget size.",
                "inner": {
                    "constant": {
                        "type": {"primitive": "usize"},
                        "const": {"expr": "64", "value": "64", "is_literal": True},
                    }
                },
            },
            "4": {
                "id": "4",
                "crate_id": 0,
                "name": "size",
                "docs": None,
                "inner": {"struct_field": {"primitive": "usize"}},
            },
        },
        "paths": {
            "0": {"crate_id": 0, "path": ["demo"], "kind": "module"},
            "1": {"crate_id": 0, "path": ["demo", "greet"], "kind": "function"},
            "2": {"crate_id": 0, "path": ["demo", "Widget"], "kind": "struct"},
            "3": {"crate_id": 0, "path": ["demo", "MAX"], "kind": "constant"},
        },
    }


@pytest.fixture
def sample_export():
    return make_sample_export()


@pytest.fixture
def tokenizer():
    return CharTokenizer()


@pytest.fixture
def collections(tmp_path):
    return CollectionManager(tmp_path / "collections", embedding_model="fake-model")


@pytest.fixture
def embedder():
    return EmbeddingClient(
        embed_fn=fake_embed,
        batch_size=2,
        max_attempts=3,
        backoff_initial=0,
        backoff_max=0,
        model_name="fake-model",
    )


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def doc_builder(sample_export):
    return InMemoryDocBuilder({"demo": copy.deepcopy(sample_export)})


@pytest.fixture
def tracker():
    return OperationTracker(history_limit=16)


@pytest_asyncio.fixture
async def embed_service(registry, doc_builder, collections, embedder, tracker):
    service = EmbedService(
        registry=registry,
        doc_builder=doc_builder,
        collections=collections,
        embedder=embedder,
        chunker=Chunker(max_tokens=512, tokenizer=CharTokenizer()),
        tracker=tracker,
        exclusive_groups=[("beta", "gamma")],
        overwrite_default=False,
    )
    yield service
    if doc_builder.gate is not None:
        doc_builder.gate.set()
    await service.wait_idle()


@pytest.fixture
def query_service(registry, collections, embedder):
    return QueryService(registry=registry, collections=collections, embedder=embedder)
