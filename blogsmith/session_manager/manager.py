"""Session Manager HTTP service.

Runs as a lightweight local web server that owns the one process-wide
GeminiClient, so every caller shares a single browser and a single request
queue. Also serves generated images and records request history.

Endpoints:
    POST /start         - Launch browser, wait for login if needed
    GET  /status        - Session state and queue state
    POST /stop          - Close browser (profile keeps the login)
    POST /query         - Send a text query, return extracted text
    POST /image         - Generate an image, return its local URL
    GET  /media         - List generated images
    GET  /stats         - Request history statistics
    GET  /uploads/media/<file> - Generated images
"""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import aiosqlite
from aiohttp import web
from pydantic import ValidationError

from ..config import (
    DB_PATH,
    SESSION_MANAGER_HOST,
    SESSION_MANAGER_PORT,
    UPLOADS_DIR,
    UPLOADS_URL_PREFIX,
    ensure_dirs,
)
from ..database.models import initialize_db
from ..database.repository import HistoryRepository
from ..errors import AutomationError
from ..models.request import ImageRequest, QueryRequest
from .gemini import GeminiClient

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class SessionManager:
    """Owns the Gemini client and the history database."""

    def __init__(self, client: Optional[GeminiClient] = None, db_path: Path = DB_PATH):
        self.client = client or GeminiClient()
        self.db_path = Path(db_path)
        self.db: aiosqlite.Connection | None = None
        self.repo: HistoryRepository | None = None

    async def setup(self):
        """Initialize database connection."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db = await aiosqlite.connect(str(self.db_path))
        await initialize_db(self.db)
        self.repo = HistoryRepository(self.db)

    async def cleanup(self):
        """Clean up resources."""
        await self.client.stop()
        if self.db:
            await self.db.close()

    async def run_tracked(
        self,
        kind: str,
        prompt: str,
        operation: Callable[[], Awaitable[Any]],
        measure: Callable[[Any], Optional[int]] = lambda result: None,
    ) -> Any:
        """Run ``operation`` and record its outcome in the requests table."""
        request_id = await self.repo.start_request(kind, prompt) if self.repo else None
        started = time.monotonic()
        try:
            result = await operation()
        except Exception as e:
            kind_of_error = e.kind if isinstance(e, AutomationError) else "internal"
            await self._finish(request_id, started, error_kind=kind_of_error, error_message=str(e))
            raise
        await self._finish(request_id, started, response_chars=measure(result))
        return result

    async def _finish(self, request_id: Optional[int], started: float, **fields):
        if request_id is None:
            return
        duration_ms = int((time.monotonic() - started) * 1000)
        try:
            await self.repo.finish_request(request_id, duration_ms, **fields)
        except Exception as e:
            logger.warning(f"Could not record request {request_id}: {e}")


def _error_response(error: Exception) -> web.Response:
    """Retryable automation errors answer 503, everything else 500."""
    if isinstance(error, AutomationError):
        return web.json_response(error.to_dict(), status=503 if error.retryable else 500)
    return web.json_response(
        {"error": str(error), "kind": "internal", "retryable": False},
        status=500,
    )


async def _read_json(request: web.Request) -> dict:
    return await request.json() if request.content_length else {}


# ── HTTP Handlers ────────────────────────────────────────────────────────────


async def handle_start(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    try:
        status = await mgr.client.start()
    except Exception as e:
        logger.error(f"Failed to start browser: {e}")
        return _error_response(e)
    return web.json_response(status.model_dump())


async def handle_status(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]

    status = mgr.client.status().model_dump()
    status["active_request"] = mgr.client.serializer.active
    status["queued_requests"] = mgr.client.serializer.waiting
    if mgr.repo:
        stats = await mgr.repo.get_stats()
        status["total_requests"] = stats["total_requests"]
        status["last_request_time"] = stats["last_request_time"]
    return web.json_response(status)


async def handle_stop(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    await mgr.client.stop()
    return web.json_response({"message": "Session stopped. The browser profile keeps the login."})


async def handle_query(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    try:
        params = QueryRequest(**await _read_json(request))
    except (ValidationError, ValueError, TypeError) as e:
        return web.json_response({"error": f"Invalid params: {e}"}, status=400)

    try:
        text = await mgr.run_tracked(
            "query",
            params.text,
            lambda: mgr.client.send_query(params.text, params.system_prompt, params.dom_delay_ms),
            measure=len,
        )
    except Exception as e:
        logger.error(f"Query failed: {e}", exc_info=not isinstance(e, AutomationError))
        return _error_response(e)

    return web.json_response({"text": text, "chars": len(text)})


async def handle_image(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    try:
        params = ImageRequest(**await _read_json(request))
    except (ValidationError, ValueError, TypeError) as e:
        return web.json_response({"error": f"Invalid params: {e}"}, status=400)

    try:
        result = await mgr.run_tracked(
            "image",
            params.prompt,
            lambda: mgr.client.generate_image(params.prompt, params.topic),
        )
    except Exception as e:
        logger.error(f"Image generation failed: {e}", exc_info=not isinstance(e, AutomationError))
        return _error_response(e)

    if mgr.repo:
        await mgr.repo.add_media(result, params.topic)
    return web.json_response(result.model_dump())


async def handle_media(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    try:
        limit = int(request.query.get("limit", "25"))
    except ValueError:
        return web.json_response({"error": "limit must be an integer."}, status=400)
    topic = request.query.get("topic", "")

    records = await mgr.repo.list_media(limit=limit, topic=topic) if mgr.repo else []
    return web.json_response({"media": [r.model_dump() for r in records], "count": len(records)})


async def handle_stats(request: web.Request) -> web.Response:
    mgr: SessionManager = request.app["manager"]
    stats = await mgr.repo.get_stats() if mgr.repo else {}
    return web.json_response(stats)


# ── App Factory ──────────────────────────────────────────────────────────────


def create_app(
    client: Optional[GeminiClient] = None,
    db_path: Path = DB_PATH,
    uploads_dir: Path = UPLOADS_DIR,
) -> web.Application:
    async def on_startup(app: web.Application):
        mgr = SessionManager(client=client, db_path=db_path)
        await mgr.setup()
        app["manager"] = mgr
        logger.info(f"Session Manager started on {SESSION_MANAGER_HOST}:{SESSION_MANAGER_PORT}")

    async def on_cleanup(app: web.Application):
        mgr: SessionManager = app["manager"]
        await mgr.cleanup()
        logger.info("Session Manager stopped.")

    app = web.Application()
    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)

    app.router.add_post("/start", handle_start)
    app.router.add_get("/status", handle_status)
    app.router.add_post("/stop", handle_stop)
    app.router.add_post("/query", handle_query)
    app.router.add_post("/image", handle_image)
    app.router.add_get("/media", handle_media)
    app.router.add_get("/stats", handle_stats)

    uploads_dir = Path(uploads_dir)
    uploads_dir.mkdir(parents=True, exist_ok=True)
    app.router.add_static(UPLOADS_URL_PREFIX, uploads_dir)

    return app


def main():
    """Run the session manager as a standalone HTTP service."""
    ensure_dirs()
    app = create_app()
    web.run_app(app, host=SESSION_MANAGER_HOST, port=SESSION_MANAGER_PORT)


if __name__ == "__main__":
    main()
