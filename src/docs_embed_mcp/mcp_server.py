"""MCP server implementation using FastMCP."""

import asyncio
import logging
import sys

from fastmcp import FastMCP

from .server import app

# Configure logging to stderr to avoid STDIO corruption
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

# Create MCP server from the FastAPI app; each tool route becomes an MCP tool
mcp = FastMCP.from_fastapi(app)

# Parameters some MCP clients send as strings; the request models coerce them
STRING_TYPED_PARAMS = {
    "embed": {"overwrite": "boolean"},
    "query": {"limit": "integer"},
}


async def override_fastmcp_schemas():
    """Relax generated schemas for numeric and boolean parameters to strings.

    The request models accept both native and string values, but FastMCP
    validates against the generated JSON schema first, so the schema must
    not reject the string form.
    """
    try:
        if not hasattr(mcp, "_tool_manager"):
            return

        tools = await mcp._tool_manager.list_tools()
        for tool in tools:
            params_to_fix = STRING_TYPED_PARAMS.get(tool.name)
            if not params_to_fix or not getattr(tool, "parameters", None):
                continue
            properties = tool.parameters.get("properties", {})
            for param_name, original_type in params_to_fix.items():
                if param_name not in properties:
                    continue
                original_schema = properties[param_name]
                properties[param_name] = {
                    "type": "string",
                    "description": original_schema.get("description", ""),
                    "title": original_schema.get("title", param_name),
                }
                logger.debug(
                    f"Replaced {tool.name}.{param_name} schema from {original_type} to string"
                )

        logger.info("Overrode FastMCP schemas for string-typed parameters")
    except Exception as e:
        # The server still works without the relaxed schemas
        logger.error(f"Failed to override FastMCP schemas: {e}", exc_info=True)


def run_mcp_server():
    """Run the MCP server with STDIO transport."""
    try:
        logger.info("Starting docs-embed-mcp server in MCP mode with STDIO transport")
        asyncio.run(override_fastmcp_schemas())
        mcp.run()
    except Exception as e:
        logger.error(f"Error running MCP server: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    run_mcp_server()
