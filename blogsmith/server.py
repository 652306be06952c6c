"""MCP Server entry point for the blogsmith Gemini automation.

Exposes 7 tools via the Model Context Protocol:
- Session management: start_session, session_status, stop_session
- Generation: send_query, generate_image
- History: list_generated_media, get_generation_stats

The Session Manager HTTP service (aiohttp on localhost:8024) is auto-started
as part of the MCP server lifecycle, so one browser and one request queue
are shared by every caller.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

from aiohttp.web import AppRunner, TCPSite
from mcp.server.fastmcp import FastMCP

from .config import DEFAULT_DOM_DELAY_MS, SESSION_MANAGER_HOST, SESSION_MANAGER_PORT, ensure_dirs
from .tools.generation_tools import generate_image, send_query
from .tools.query_tools import get_generation_stats, list_generated_media
from .tools.session_tools import session_status, start_session, stop_session

# Configure logging to stderr (stdout is reserved for MCP JSON-RPC)
logging.basicConfig(
    stream=sys.stderr,
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("blogsmith")

# Ensure data directories exist
ensure_dirs()


# ── Lifespan: auto-start Session Manager ─────────────────────────────────────


@asynccontextmanager
async def lifespan(server: FastMCP):
    """Start the Session Manager HTTP service alongside the MCP server."""
    from .session_manager.manager import create_app

    app = create_app()
    runner = AppRunner(app)
    await runner.setup()
    site = TCPSite(runner, SESSION_MANAGER_HOST, SESSION_MANAGER_PORT)
    managed = False
    try:
        await site.start()
        logger.info(
            "Session Manager auto-started on %s:%s", SESSION_MANAGER_HOST, SESSION_MANAGER_PORT
        )
        managed = True
    except OSError:
        # Port already in use — assume Session Manager was started manually
        logger.info(
            "Session Manager already running on %s:%s", SESSION_MANAGER_HOST, SESSION_MANAGER_PORT
        )
        await runner.cleanup()

    try:
        yield {}
    finally:
        if managed:
            await runner.cleanup()
            logger.info("Session Manager stopped.")


# ── MCP Server ───────────────────────────────────────────────────────────────

mcp = FastMCP(
    "blogsmith",
    lifespan=lifespan,
    instructions=(
        "blogsmith - Drive the Gemini web UI to write blog content and hero images. "
        "The Session Manager starts automatically with this server. "
        "Call start_session first; if Gemini is not logged in, the user must log in "
        "in the browser window. Use send_query for text and generate_image for images. "
        "Requests are queued and run one at a time. "
        "Use list_generated_media and get_generation_stats to inspect history."
    ),
)


# ── Session Management Tools ─────────────────────────────────────────────────


@mcp.tool()
async def tool_start_session() -> str:
    """Start the Gemini browser session.

    Launches the browser with the saved profile. If not logged in, waits
    (up to 5 minutes) for the user to log in in the browser window.
    """
    return await start_session()


@mcp.tool()
async def tool_session_status() -> str:
    """Check if the Gemini session is alive and what is queued."""
    return await session_status()


@mcp.tool()
async def tool_stop_session() -> str:
    """Stop the browser session. The saved profile keeps the login."""
    return await stop_session()


# ── Generation Tools ─────────────────────────────────────────────────────────


@mcp.tool()
async def tool_send_query(
    text: str,
    system_prompt: str = "",
    dom_delay_ms: int = DEFAULT_DOM_DELAY_MS,
) -> str:
    """Send a prompt to Gemini and return its response text.

    Args:
        text: The user prompt.
        system_prompt: Instructions placed before the prompt.
        dom_delay_ms: Grace period after completion (1000-4000).
    """
    return await send_query(text, system_prompt, dom_delay_ms)


@mcp.tool()
async def tool_generate_image(prompt: str, topic: str = "") -> str:
    """Generate an image with Gemini and save it locally.

    Args:
        prompt: Image description.
        topic: Blog topic, used for filename, alt text and caption.
    """
    return await generate_image(prompt, topic)


# ── History Tools ────────────────────────────────────────────────────────────


@mcp.tool()
async def tool_list_generated_media(topic: str = "", limit: int = 25) -> str:
    """List images generated so far, newest first.

    Args:
        topic: Filter by topic substring.
        limit: Max results (default 25).
    """
    return await list_generated_media(topic, limit)


@mcp.tool()
async def tool_get_generation_stats() -> str:
    """Get request counts, failure kinds and average duration."""
    return await get_generation_stats()


# ── Entry Point ──────────────────────────────────────────────────────────────


def main():
    """Run the MCP server on STDIO transport."""
    logger.info("Starting blogsmith MCP server...")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
