"""MCP tools for querying the local generation history (instant, no browser)."""

from __future__ import annotations

import json

import aiosqlite

from ..config import DB_PATH
from ..database.models import initialize_db
from ..database.repository import HistoryRepository


async def _get_repo() -> tuple[aiosqlite.Connection, HistoryRepository]:
    """Get a database connection and repository."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(DB_PATH))
    await initialize_db(db)
    return db, HistoryRepository(db)


async def list_generated_media(topic: str = "", limit: int = 25) -> str:
    """List images previously generated and stored locally.

    Args:
        topic: Only images whose topic contains this text.
        limit: Max results to return (default 25).

    Returns:
        JSON list of media records, newest first.
    """
    db, repo = await _get_repo()
    try:
        records = await repo.list_media(limit=limit, topic=topic)
        if not records:
            return "No generated images yet. Use generate_image first."
        return json.dumps([r.model_dump() for r in records], indent=2)
    finally:
        await db.close()


async def get_generation_stats() -> str:
    """Summarize request history: counts, failures by kind, average duration.

    Returns:
        JSON-formatted statistics.
    """
    db, repo = await _get_repo()
    try:
        stats = await repo.get_stats()
        return json.dumps(stats, indent=2)
    finally:
        await db.close()
