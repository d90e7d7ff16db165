"""Simple configuration for docs-embed-mcp."""

import os
import warnings
from pathlib import Path

# Cache configuration
CACHE_DIR = Path(os.getenv("DOCS_EMBED_CACHE_DIR", "./cache"))
COLLECTIONS_DIR = CACHE_DIR / "collections"

# Model configuration
MODEL_NAME = os.getenv("DOCS_EMBED_MODEL_NAME", "BAAI/bge-small-en-v1.5")
EMBEDDING_DIM = 384  # for bge-small-en-v1.5

# Chunking configuration
CHUNK_MAX_TOKENS = int(os.getenv("DOCS_EMBED_CHUNK_MAX_TOKENS", "384"))
if CHUNK_MAX_TOKENS < 16:
    warnings.warn(
        f"Chunk budget {CHUNK_MAX_TOKENS} too small, using 384", stacklevel=2
    )
    CHUNK_MAX_TOKENS = 384
TOKENIZER_ENCODING = os.getenv("DOCS_EMBED_TOKENIZER_ENCODING", "cl100k_base")

# Embedding client
EMBEDDING_BATCH_SIZE = int(os.getenv("DOCS_EMBED_EMBEDDING_BATCH_SIZE", "32"))
EMBEDDING_MAX_ATTEMPTS = int(os.getenv("DOCS_EMBED_EMBEDDING_MAX_ATTEMPTS", "4"))
EMBEDDING_BACKOFF_INITIAL = float(
    os.getenv("DOCS_EMBED_EMBEDDING_BACKOFF_INITIAL", "0.5")
)
EMBEDDING_BACKOFF_MAX = float(os.getenv("DOCS_EMBED_EMBEDDING_BACKOFF_MAX", "8.0"))

# Database configuration
DB_TIMEOUT = float(os.getenv("DOCS_EMBED_DB_TIMEOUT", "30.0"))
SCHEMA_VERSION = 1

# Search configuration
DEFAULT_LIMIT = int(os.getenv("DOCS_EMBED_DEFAULT_LIMIT", "10"))
MAX_LIMIT = int(os.getenv("DOCS_EMBED_MAX_LIMIT", "50"))

# Re-embedding an identity whose features already match is a no-op unless
# the caller asks to overwrite; this flips the default.
OVERWRITE_ON_REEMBED = (
    os.getenv("DOCS_EMBED_OVERWRITE_ON_REEMBED", "false").lower() == "true"
)

# Operation tracking
OPERATION_HISTORY = int(os.getenv("DOCS_EMBED_OPERATION_HISTORY", "256"))

# Documentation build
BUILD_TIMEOUT = float(os.getenv("DOCS_EMBED_BUILD_TIMEOUT", "900"))
CARGO_TOOLCHAIN = os.getenv("DOCS_EMBED_CARGO_TOOLCHAIN", "nightly")
MAX_DECOMPRESSED_SIZE = int(
    os.getenv("DOCS_EMBED_MAX_DECOMPRESSED_SIZE", str(200 * 1024 * 1024))
)  # 200MB

# Directory of pre-built exports (<crate>-<version>.json[.gz|.zst]); when set,
# exports are loaded from it instead of running cargo
EXPORT_DIR = os.getenv("DOCS_EMBED_EXPORT_DIR") or None

# HTTP configuration
HTTP_TIMEOUT = float(os.getenv("DOCS_EMBED_HTTP_TIMEOUT", "30.0"))
CRATES_IO_API = os.getenv("DOCS_EMBED_CRATES_IO_API", "https://crates.io/api/v1")

# Mutually exclusive feature groups, e.g. "rustls,native-tls;runtime-a,runtime-b"
EXCLUSIVE_FEATURE_GROUPS = [
    tuple(f.strip() for f in group.split(",") if f.strip())
    for group in os.getenv("DOCS_EMBED_EXCLUSIVE_FEATURES", "").split(";")
    if group.strip()
]

# Rate limiting
RATE_LIMIT = os.getenv("DOCS_EMBED_RATE_LIMIT", "30/second")

# Server configuration
PORT = int(os.getenv("DOCS_EMBED_PORT", "8000"))
if not 1024 <= PORT <= 65535:
    warnings.warn(f"Port {PORT} out of range (1024-65535), using 8000", stacklevel=2)
    PORT = 8000

# Version for User-Agent header
VERSION = "0.1.0"
