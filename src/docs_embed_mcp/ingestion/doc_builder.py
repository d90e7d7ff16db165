"""Producing rustdoc JSON doc exports.

This module handles:
- Generating rustdoc JSON with cargo in a temporary project
- Loading pre-built exports from disk (.json, .json.gz, .json.zst)
- Decompression with size limits
"""

import asyncio
import gzip
import io
import logging
import os
import shutil
import tempfile
from pathlib import Path

import zstandard

from .. import config
from ..errors import BuildFailure
from ..models.domain import PackageIdentity

logger = logging.getLogger(__name__)

DECOMPRESS_CHUNK_SIZE = 64 * 1024
ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"
GZIP_MAGIC = b"\x1f\x8b"


class DocBuilder:
    """Produces the rustdoc JSON text for a package identity."""

    async def build(self, identity: PackageIdentity) -> str:
        raise NotImplementedError


def decompress_content(
    content: bytes, filename: str, max_size: int = config.MAX_DECOMPRESSED_SIZE
) -> str:
    """Decompress a doc export based on its extension or magic bytes.

    Raises:
        BuildFailure: If decompression fails or the size limit is exceeded
    """
    is_zstd = content[:4] == ZSTD_MAGIC
    is_gzip = content[:2] == GZIP_MAGIC

    if filename.endswith(".zst") or is_zstd:
        try:
            dctx = zstandard.ZstdDecompressor(max_window_size=2**31)
            chunks = []
            total_size = 0
            with dctx.stream_reader(io.BytesIO(content)) as reader:
                while True:
                    chunk = reader.read(DECOMPRESS_CHUNK_SIZE)
                    if not chunk:
                        break
                    chunks.append(chunk)
                    total_size += len(chunk)
                    if total_size > max_size:
                        raise BuildFailure(
                            f"Decompressed size exceeded limit: {total_size} bytes"
                        )
            decompressed = b"".join(chunks)
            logger.info(f"Decompressed {filename}: {len(content)} -> {total_size} bytes")
        except zstandard.ZstdError as e:
            raise BuildFailure(f"zstd decompress error for {filename}: {e}") from e

    elif filename.endswith(".gz") or is_gzip:
        try:
            decompressed = gzip.decompress(content)
        except (gzip.BadGzipFile, OSError, EOFError) as e:
            raise BuildFailure(f"gzip decompress error for {filename}: {e}") from e
        if len(decompressed) > max_size:
            raise BuildFailure(
                f"Decompressed size exceeded limit: {len(decompressed)} bytes"
            )
        logger.info(
            f"Decompressed {filename}: {len(content)} -> {len(decompressed)} bytes"
        )

    else:
        if len(content) > max_size:
            raise BuildFailure(f"Uncompressed size exceeded limit: {len(content)} bytes")
        decompressed = content

    try:
        return decompressed.decode("utf-8")
    except UnicodeDecodeError as e:
        raise BuildFailure(f"Doc export {filename} is not valid UTF-8: {e}") from e


class FileDocBuilder(DocBuilder):
    """Load pre-built exports named ``<crate>-<version>.json[.gz|.zst]``."""

    SUFFIXES = (".json.zst", ".json.gz", ".json")

    def __init__(self, directory: str | Path, max_size: int = config.MAX_DECOMPRESSED_SIZE):
        self.directory = Path(directory)
        self.max_size = max_size

    def find_export(self, identity: PackageIdentity) -> Path | None:
        underscored = identity.name.replace("-", "_")
        stems = [f"{identity.name}-{identity.version}", f"{underscored}-{identity.version}"]
        for stem in stems:
            for suffix in self.SUFFIXES:
                candidate = self.directory / f"{stem}{suffix}"
                if candidate.is_file():
                    return candidate
        return None

    async def build(self, identity: PackageIdentity) -> str:
        path = self.find_export(identity)
        if path is None:
            raise BuildFailure(
                f"No doc export for {identity.name} v{identity.version} in {self.directory}"
            )
        content = await asyncio.to_thread(path.read_bytes)
        return await asyncio.to_thread(
            decompress_content, content, path.name, self.max_size
        )


class CargoDocBuilder(DocBuilder):
    """Generate rustdoc JSON with ``cargo +<toolchain> doc`` in a temporary project."""

    def __init__(
        self,
        toolchain: str = config.CARGO_TOOLCHAIN,
        timeout: float = config.BUILD_TIMEOUT,
        cargo: str = "cargo",
    ):
        self.toolchain = toolchain
        self.timeout = timeout
        self.cargo = cargo

    @staticmethod
    def manifest_for(identity: PackageIdentity) -> str:
        """Cargo.toml for a throwaway crate depending on the target crate."""
        features = ""
        if identity.features:
            feature_list = ", ".join(f'"{f}"' for f in identity.features)
            features = f", features = [{feature_list}]"
        return (
            "[package]\n"
            'name = "docs-embed-temp"\n'
            'version = "0.1.0"\n'
            'edition = "2021"\n'
            "\n"
            "[lib]\n"
            'path = "src/lib.rs"\n'
            "\n"
            "[dependencies]\n"
            f'{identity.name} = {{ version = "={identity.version}"{features} }}\n'
        )

    def command(self, identity: PackageIdentity) -> list[str]:
        return [
            self.cargo,
            f"+{self.toolchain}",
            "doc",
            "--no-deps",
            "-p",
            identity.name,
        ]

    def _prepare_project(self, identity: PackageIdentity) -> Path:
        project = Path(tempfile.mkdtemp(prefix="docs-embed-"))
        (project / "src").mkdir()
        (project / "src" / "lib.rs").write_text("")
        (project / "Cargo.toml").write_text(self.manifest_for(identity))
        return project

    async def build(self, identity: PackageIdentity) -> str:
        if shutil.which(self.cargo) is None:
            raise BuildFailure(f"'{self.cargo}' not found on PATH")

        project = await asyncio.to_thread(self._prepare_project, identity)
        try:
            return await self._run_cargo(identity, project)
        finally:
            # The target directory can hold thousands of files
            await asyncio.to_thread(shutil.rmtree, project, ignore_errors=True)

    async def _run_cargo(self, identity: PackageIdentity, project: Path) -> str:
        env = dict(os.environ)
        env["RUSTDOCFLAGS"] = "-Z unstable-options --output-format json"
        env["CARGO_TARGET_DIR"] = str(project / "target")

        logger.info(f"Building rustdoc JSON for {identity}")
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command(identity),
                cwd=project,
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise BuildFailure(f"Could not start cargo: {e}") from e

        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise BuildFailure(
                f"cargo doc timed out after {self.timeout:.0f}s for {identity.key}"
            ) from e

        if process.returncode != 0:
            tail = stderr.decode("utf-8", errors="replace").strip()[-2000:]
            raise BuildFailure(
                f"cargo doc exited with status {process.returncode}: {tail}"
            )

        output = project / "target" / "doc" / f"{identity.name.replace('-', '_')}.json"
        if not output.is_file():
            raise BuildFailure(f"cargo doc produced no JSON output at {output}")
        return await asyncio.to_thread(output.read_text, encoding="utf-8")
