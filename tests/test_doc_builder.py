"""Tests for loading and generating rustdoc JSON exports."""

import asyncio
import gzip
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import zstandard

from docs_embed_mcp.errors import BuildFailure
from docs_embed_mcp.ingestion.doc_builder import (
    CargoDocBuilder,
    FileDocBuilder,
    decompress_content,
)
from docs_embed_mcp.models.domain import PackageIdentity

PAYLOAD = json.dumps({"root": "0", "index": {}})


@pytest.fixture
def identity():
    return PackageIdentity(name="async-trait", version="0.1.80", features=["std"])


class ThreadRecorder:
    """Wraps asyncio.to_thread and records which callables ran off the loop."""

    def __init__(self):
        self.real = asyncio.to_thread
        self.names = []

    async def __call__(self, func, *args, **kwargs):
        self.names.append(getattr(func, "__name__", repr(func)))
        return await self.real(func, *args, **kwargs)


class TestDecompressContent:
    def test_plain(self):
        assert decompress_content(PAYLOAD.encode(), "x.json") == PAYLOAD

    def test_gzip_by_extension_and_magic(self):
        packed = gzip.compress(PAYLOAD.encode())
        assert decompress_content(packed, "x.json.gz") == PAYLOAD
        assert decompress_content(packed, "export") == PAYLOAD

    def test_zstd(self):
        packed = zstandard.ZstdCompressor().compress(PAYLOAD.encode())
        assert decompress_content(packed, "x.json.zst") == PAYLOAD

    @pytest.mark.parametrize(
        "compress,filename",
        [
            (lambda b: b, "x.json"),
            (gzip.compress, "x.json.gz"),
            (lambda b: zstandard.ZstdCompressor().compress(b), "x.json.zst"),
        ],
    )
    def test_size_limit(self, compress, filename):
        with pytest.raises(BuildFailure, match="exceeded limit"):
            decompress_content(compress(b"x" * 1000), filename, max_size=100)

    def test_corrupt_gzip(self):
        with pytest.raises(BuildFailure):
            decompress_content(b"\x1f\x8bgarbage", "x.json.gz")

    def test_invalid_utf8(self):
        with pytest.raises(BuildFailure, match="UTF-8"):
            decompress_content(b"\xff\xfe\xfd", "x.json")


class TestFileDocBuilder:
    @pytest.mark.asyncio
    async def test_finds_underscored_compressed_export(self, tmp_path, identity):
        (tmp_path / "async_trait-0.1.80.json.gz").write_bytes(gzip.compress(PAYLOAD.encode()))
        assert await FileDocBuilder(tmp_path).build(identity) == PAYLOAD

    @pytest.mark.asyncio
    async def test_missing_export(self, tmp_path, identity):
        with pytest.raises(BuildFailure, match="No doc export"):
            await FileDocBuilder(tmp_path).build(identity)

    @pytest.mark.asyncio
    async def test_read_and_decompress_run_in_threads(self, tmp_path, identity):
        (tmp_path / "async-trait-0.1.80.json.zst").write_bytes(
            zstandard.ZstdCompressor().compress(PAYLOAD.encode())
        )
        recorder = ThreadRecorder()

        with patch("docs_embed_mcp.ingestion.doc_builder.asyncio.to_thread", recorder):
            assert await FileDocBuilder(tmp_path).build(identity) == PAYLOAD

        assert {"read_bytes", "decompress_content"} <= set(recorder.names)


class TestCargoDocBuilder:
    def test_manifest_pins_version_and_features(self, identity):
        manifest = CargoDocBuilder.manifest_for(identity)
        assert 'async-trait = { version = "=0.1.80", features = ["std"] }' in manifest

    def test_manifest_without_features(self):
        manifest = CargoDocBuilder.manifest_for(PackageIdentity(name="serde", version="1.0.0"))
        assert 'serde = { version = "=1.0.0" }' in manifest

    def test_command(self, identity):
        builder = CargoDocBuilder(toolchain="nightly-2024-06-01")
        assert builder.command(identity) == [
            "cargo",
            "+nightly-2024-06-01",
            "doc",
            "--no-deps",
            "-p",
            "async-trait",
        ]

    @pytest.mark.asyncio
    async def test_missing_cargo(self, identity):
        builder = CargoDocBuilder(cargo="definitely-not-cargo")
        with patch("docs_embed_mcp.ingestion.doc_builder.shutil.which", return_value=None):
            with pytest.raises(BuildFailure, match="not found"):
                await builder.build(identity)

    @pytest.mark.asyncio
    async def test_nonzero_exit_reports_stderr(self, identity):
        process = MagicMock()
        process.communicate = AsyncMock(return_value=(b"", b"error: no matching package"))
        process.returncode = 101

        with patch(
            "docs_embed_mcp.ingestion.doc_builder.shutil.which", return_value="/usr/bin/cargo"
        ), patch(
            "docs_embed_mcp.ingestion.doc_builder.asyncio.create_subprocess_exec",
            AsyncMock(return_value=process),
        ):
            with pytest.raises(BuildFailure, match="no matching package"):
                await CargoDocBuilder().build(identity)

    @pytest.mark.asyncio
    async def test_success_reads_json_output(self, identity):
        async def fake_exec(*args, cwd, env, **kwargs):
            output = cwd / "target" / "doc"
            output.mkdir(parents=True)
            (output / "async_trait.json").write_text(PAYLOAD)
            assert "--output-format json" in env["RUSTDOCFLAGS"]
            process = MagicMock()
            process.communicate = AsyncMock(return_value=(b"", b""))
            process.returncode = 0
            return process

        with patch(
            "docs_embed_mcp.ingestion.doc_builder.shutil.which", return_value="/usr/bin/cargo"
        ), patch(
            "docs_embed_mcp.ingestion.doc_builder.asyncio.create_subprocess_exec", fake_exec
        ):
            assert await CargoDocBuilder().build(identity) == PAYLOAD

    @pytest.mark.asyncio
    async def test_file_work_runs_in_threads(self, identity):
        recorder = ThreadRecorder()
        projects = []

        async def fake_exec(*args, cwd, env, **kwargs):
            projects.append(cwd)
            output = cwd / "target" / "doc"
            output.mkdir(parents=True)
            (output / "async_trait.json").write_text(PAYLOAD)
            process = MagicMock()
            process.communicate = AsyncMock(return_value=(b"", b""))
            process.returncode = 0
            return process

        with patch(
            "docs_embed_mcp.ingestion.doc_builder.shutil.which", return_value="/usr/bin/cargo"
        ), patch(
            "docs_embed_mcp.ingestion.doc_builder.asyncio.create_subprocess_exec", fake_exec
        ), patch("docs_embed_mcp.ingestion.doc_builder.asyncio.to_thread", recorder):
            assert await CargoDocBuilder().build(identity) == PAYLOAD

        assert {"_prepare_project", "read_text", "rmtree"} <= set(recorder.names)
        assert not projects[0].exists()

    @pytest.mark.asyncio
    async def test_failed_build_removes_project(self, identity):
        projects = []

        async def fake_exec(*args, cwd, env, **kwargs):
            projects.append(cwd)
            process = MagicMock()
            process.communicate = AsyncMock(return_value=(b"", b"error"))
            process.returncode = 1
            return process

        with patch(
            "docs_embed_mcp.ingestion.doc_builder.shutil.which", return_value="/usr/bin/cargo"
        ), patch(
            "docs_embed_mcp.ingestion.doc_builder.asyncio.create_subprocess_exec", fake_exec
        ):
            with pytest.raises(BuildFailure):
                await CargoDocBuilder().build(identity)

        assert not projects[0].exists()
