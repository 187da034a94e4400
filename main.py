# =============================================================================
# main.py  -  Entry Point for the Real Estate Ops MCP Server
# =============================================================================
#
# HOW TO RUN:
#   uv run python main.py
#
# WHAT HAPPENS:
#   1. Loads .env (NOTION_TOKEN, REAL_ESTATE_PAGE_ID, DBS_FILE, PORT, ...)
#   2. Builds the immutable Settings, including the collection registry
#      read from dbs.json.  Bad or missing configuration stops here.
#   3. Opens the Notion client and builds the FastMCP server around it
#      (tools/mcp_server.py)
#   4. Serves it on MCP_TRANSPORT (sse by default) at HOST:PORT + MCP_PATH,
#      closing the Notion client on shutdown
#
# CONFIGURATION:
#   See .env.example and dbs.example.json.
# =============================================================================

import asyncio
import logging
import sys

from dotenv import load_dotenv

# Must run before load_settings() reads the environment.
load_dotenv()

from core.config import Settings, load_settings
from core.errors import ConfigError
from core.store import NotionStore
from tools.mcp_server import build_server, configure_logging, cors_middleware, describe

logger = logging.getLogger("main")


async def serve(settings: Settings) -> None:
    """Run the server; the Notion client is closed when it stops."""
    async with NotionStore.from_settings(settings) as store:
        mcp = build_server(settings, store)
        if settings.transport == "stdio":
            await mcp.run_async(transport="stdio")
        else:
            await mcp.run_async(
                transport=settings.transport,
                host=settings.host,
                port=settings.port,
                path=settings.path,
                middleware=cors_middleware(),
            )
    logger.info("Notion client closed")


def main() -> int:
    """Load configuration and serve until interrupted."""
    try:
        settings = load_settings()
    except ConfigError as e:
        configure_logging()
        logger.error(f"Configuration error: {e}")
        return 2

    configure_logging(settings.log_level)
    logger.info(f"Starting {describe(settings)}")

    asyncio.run(serve(settings))
    return 0


# =============================================================================
# Script entry point
# =============================================================================
if __name__ == "__main__":
    sys.exit(main())
