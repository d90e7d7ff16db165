"""CLI entry point for the docs-embed-mcp server."""

import argparse
import logging
import os
import sys

import uvicorn

# Log to stderr so the MCP STDIO transport stays clean
logging.basicConfig(level=logging.INFO, stream=sys.stderr)
logger = logging.getLogger(__name__)


def main() -> None:
    """Main entry point for the docs-embed-mcp server."""
    parser = argparse.ArgumentParser(
        description="docs-embed-mcp server - semantic search over Rust crate docs"
    )
    parser.add_argument(
        "--mode",
        choices=["rest", "mcp"],
        default="mcp",
        help="Server mode: 'rest' for HTTP API, 'mcp' for MCP protocol via STDIO (default: mcp)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for REST server (default: 8000, ignored in MCP mode)",
    )
    parser.add_argument(
        "--cache-dir",
        default=None,
        help="Directory holding embedded collections (default: ./cache)",
    )
    parser.add_argument(
        "--export-dir",
        default=None,
        help="Load pre-built rustdoc JSON exports from this directory instead of running cargo",
    )
    parser.add_argument(
        "--overwrite-on-reembed",
        action="store_true",
        default=False,
        help="Re-embed when the same features are already embedded (default: no-op)",
    )
    args = parser.parse_args()

    # Convert CLI arguments to environment variables
    if args.port is not None:
        if 1024 <= args.port <= 65535:
            os.environ["DOCS_EMBED_PORT"] = str(args.port)
        else:
            logger.warning(
                f"Port {args.port} out of range (1024-65535), using default"
            )

    if args.cache_dir:
        os.environ["DOCS_EMBED_CACHE_DIR"] = args.cache_dir

    if args.export_dir:
        os.environ["DOCS_EMBED_EXPORT_DIR"] = args.export_dir

    if args.overwrite_on_reembed:
        os.environ["DOCS_EMBED_OVERWRITE_ON_REEMBED"] = "true"

    # Import after setting environment variables so config sees them
    from . import config  # noqa: PLC0415

    logger.info("Starting docs-embed-mcp server with configuration:")
    logger.info(f"  Mode: {args.mode}")
    logger.info(f"  Port: {config.PORT if args.mode == 'rest' else 'N/A (MCP mode)'}")
    logger.info(f"  Cache dir: {config.CACHE_DIR}")
    logger.info(f"  Model: {config.MODEL_NAME}")

    if args.mode == "mcp":
        if args.port is not None:
            logger.warning("--port flag is ignored in MCP mode")

        from .mcp_server import run_mcp_server  # noqa: PLC0415

        run_mcp_server()
    else:
        host = os.getenv("HOST", "0.0.0.0")
        logger.info(f"Starting docs-embed-mcp server in REST mode on {host}:{config.PORT}")

        uvicorn.run(
            "docs_embed_mcp.server:app",
            host=host,
            port=config.PORT,
            loop="auto",
            workers=1,
            log_level="info",
        )


if __name__ == "__main__":
    main()
