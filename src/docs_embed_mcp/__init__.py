"""docs-embed-mcp: semantic search over Rust crate documentation for MCP clients."""

__version__ = "0.1.0"
