"""FastMCP server for CRM provisioning.

Lets an MCP client (e.g. a desktop assistant) browse schema templates,
validate a schema, and provision a CRM in Notion.

The server manages:
- Loaded configuration
- One rate-limited executor shared by every provisioning call
- A factory creating a Notion client per call
"""

import logging
from contextlib import asynccontextmanager
from functools import partial
from typing import Any

from fastmcp import FastMCP

from src.cli.config import load_config
from src.cli.factory import get_client, get_executor

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: Any):
    """Initialize shared provisioning state.

    Resources yielded are available to all tools via ctx.lifespan_context:
    - config: CRMForgeConfig
    - executor: RateLimitedExecutor shared by all runs
    - client_factory: zero-argument callable returning a record store client
    """
    config = load_config()
    executor = get_executor(config)
    try:
        yield {
            "config": config,
            "executor": executor,
            "client_factory": partial(get_client, config),
        }
    finally:
        await executor.aclose()


# Create the FastMCP server instance
mcp = FastMCP(name="CRMForge", lifespan=lifespan)


# Import and register tools
from src.mcp.provisioning.tools import (
    get_schema_template,
    list_schema_templates,
    provision_crm,
    validate_crm_schema,
)

mcp.tool()(list_schema_templates)
mcp.tool()(get_schema_template)
mcp.tool()(validate_crm_schema)
mcp.tool()(provision_crm)


def main() -> None:
    """Run the server over stdio."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
