# =============================================================================
# tools/mcp_server.py  -  FastMCP Tool Server
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Exposes the two operations as MCP tools.  Each tool is a thin wrapper
#   around core/operations.py: it logs the call, forwards the validated
#   parameters and returns the one-line status string.
#
#     upsert               ->  "updated:<id>" | "created:<id>"
#     rebuild-hub-summary  ->  "hub-updated:<n>"
#
# HOW IT WORKS (the flow):
#   1. A client opens an MCP session (SSE, streamable HTTP or stdio)
#   2. It calls a tool by name with JSON arguments
#   3. FastMCP validates them against the signature below (types, the 1-90
#      range on sinceDays, defaults)
#   4. The tool calls the core operation and returns its status string
#   5. Errors are not caught here: FastMCP turns them into a failed call
#      carrying the error message (UnknownCollection, StoreError, ...)
#
# ROUTES:
#   Besides the MCP endpoint, the server answers GET / ("OK"), GET /health
#   (JSON) and GET /favicon.ico (204) for load balancers and browsers.
#   Over HTTP transports every route sits behind an open CORS policy
#   (cors_middleware below).
# =============================================================================

import json
import logging
import sys
from typing import Annotated, Any, Optional, Union

from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response

# The tools layer depends on core/ and nothing else.
from core.config import Settings
from core.hub_summary import DEFAULT_SINCE_DAYS, MAX_SINCE_DAYS, MIN_SINCE_DAYS
from core.operations import Operations, make_operations
from core.store import RecordStore
from core.write_queue import AnyWriteQueue

SERVER_NAME = "RealEstateOps"

logger = logging.getLogger(__name__)

# =============================================================================
# Logging Setup
# =============================================================================
# Logs go to STDERR: with the stdio transport, STDOUT carries the MCP
# protocol and any stray line there breaks the client.
#
# ANSI colours in the tool log:
#   CYAN   -> incoming requests (tool name + parameters)
#   YELLOW -> intermediate status
#   GREEN  -> responses
# =============================================================================

_CYAN = "\033[36m"
_GREEN = "\033[32m"
_YELLOW = "\033[33m"
_RESET = "\033[0m"


def configure_logging(level: str = "INFO") -> None:
    """Send all logging to stderr with the server's format."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [MCP] %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    # httpx logs every request at INFO; the store client logs its own.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _log_request(tool_name: str, **params) -> None:
    """Log an incoming tool call with its parameters in CYAN."""
    param_str = ", ".join(f"{k}={v!r}" for k, v in params.items())
    logger.info(f"{_CYAN}{tool_name} called with: {param_str}{_RESET}")


def _log_status(message: str) -> None:
    """Log an intermediate status message in YELLOW."""
    logger.info(f"{_YELLOW}  → {message}{_RESET}")


def _log_response(tool_name: str, result: str) -> str:
    """Log the tool response in GREEN, then return it."""
    logger.info(f"{_GREEN}  ← {tool_name} response: {result}{_RESET}")
    return result


# =============================================================================
# Tool annotations
# =============================================================================
# upsert is idempotent for a given unique value (absent concurrent callers).
# The rebuild archives blocks, so it is flagged destructive.
_UPSERT = ToolAnnotations(idempotentHint=True, destructiveHint=False)
_REBUILD = ToolAnnotations(idempotentHint=False, destructiveHint=True)

Scalar = Union[bool, int, float, str]


# =============================================================================
# Server factory
# =============================================================================
def build_server(
    settings: Settings,
    store: Optional[RecordStore] = None,
    write_queue: Optional[AnyWriteQueue] = None,
) -> FastMCP:
    """Create the FastMCP server bound to ``settings``.

    Args:
        settings: Shared immutable configuration.
        store: Record store client; a NotionStore is built when omitted.
        write_queue: Shared write queue; built from
            ``settings.serialize_writes`` when omitted.
    """
    ops: Operations = make_operations(settings, store, write_queue)

    mcp = FastMCP(
        SERVER_NAME,
        instructions=(
            "Real-estate workflow records in Notion. "
            "Use upsert to create or update a record identified by one unique field. "
            "Use rebuild-hub-summary to republish the AUTO summary of recent changes "
            "on the Real Estate hub page."
        ),
    )

    # -------------------------------------------------------------------------
    # TOOL 1: upsert
    # -------------------------------------------------------------------------
    @mcp.tool(
        name="upsert",
        description=(
            "Find the record whose uniqueProp equals uniqueValue in collection db "
            "and update it with properties, or create it when there is no match. "
            "Numbers match number fields, values like a@b match email fields, "
            "anything else matches rich text. Returns updated:<id> or created:<id>."
        ),
        annotations=_UPSERT,
    )
    async def upsert(
        db: Annotated[str, Field(
            description=f"Logical collection name. Configured: {', '.join(settings.registry)}.",
        )],
        uniqueProp: Annotated[str, Field(
            description="Name of the field that identifies the record.",
        )],
        uniqueValue: Annotated[Scalar, Field(
            description="Value of the unique field to look for.",
        )],
        properties: Annotated[dict[str, Any], Field(
            description="Notion property values to write, keyed by field name.",
        )],
    ) -> str:
        _log_request("upsert", db=db, uniqueProp=uniqueProp,
                     uniqueValue=uniqueValue, properties=list(properties))
        result = await ops.upsert(db, uniqueProp, uniqueValue, properties)
        return _log_response("upsert", str(result))

    # -------------------------------------------------------------------------
    # TOOL 2: rebuild-hub-summary
    # -------------------------------------------------------------------------
    @mcp.tool(
        name="rebuild-hub-summary",
        description=(
            "Archive the previous 'AUTO · Resumen' callout on the hub page and "
            "publish a new one listing up to 25 records of db changed in the last "
            "sinceDays days, newest first. Returns hub-updated:<n>."
        ),
        annotations=_REBUILD,
    )
    async def rebuild_hub_summary(
        sinceDays: Annotated[int, Field(
            ge=MIN_SINCE_DAYS, le=MAX_SINCE_DAYS,
            description="Lookback window in days.",
        )] = DEFAULT_SINCE_DAYS,
        db: Annotated[str, Field(
            description="Logical collection name to summarize.",
        )] = settings.default_collection,
    ) -> str:
        _log_request("rebuild-hub-summary", sinceDays=sinceDays, db=db)
        result = await ops.rebuild_hub_summary(since_days=sinceDays, db=db)
        if result.archived:
            _log_status(f"Archived {result.archived} previous summary block(s)")
        return _log_response("rebuild-hub-summary", str(result))

    # -------------------------------------------------------------------------
    # Plain HTTP routes
    # -------------------------------------------------------------------------
    @mcp.custom_route("/", methods=["GET"])
    async def root(request: Request) -> Response:
        return PlainTextResponse("OK")

    @mcp.custom_route("/health", methods=["GET"])
    async def health(request: Request) -> Response:
        return JSONResponse({
            "status": "ok",
            "server": SERVER_NAME,
            "collections": settings.registry.names(),
        })

    @mcp.custom_route("/favicon.ico", methods=["GET"])
    async def favicon(request: Request) -> Response:
        return Response(status_code=204)

    return mcp


def cors_middleware() -> list[Middleware]:
    """Open CORS so browser-hosted MCP clients can reach the HTTP endpoints.

    Answers OPTIONS preflights and adds ``Access-Control-Allow-Origin: *``.
    """
    return [
        Middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "DELETE", "HEAD", "OPTIONS"],
            allow_headers=["*"],
            expose_headers=["mcp-session-id"],
        )
    ]


def describe(settings: Settings) -> str:
    """One-line startup banner for the log."""
    return json.dumps({
        "server": SERVER_NAME,
        "transport": settings.transport,
        "endpoint": f"http://{settings.host}:{settings.port}{settings.path}",
        "collections": settings.registry.names(),
        "serialize_writes": settings.serialize_writes,
    }, separators=(",", ":"), ensure_ascii=False)
