"""Async repository for request history and generated media."""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import Optional

import aiosqlite

from ..models.artifact import ImageResult, MediaRecord

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

PROMPT_PREVIEW_CHARS = 200


class HistoryRepository:
    """Records every automation request and every stored image."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def start_request(self, kind: str, prompt: str) -> int:
        """Insert a running request and return its id."""
        cursor = await self._db.execute(
            "INSERT INTO requests (kind, prompt_preview, status, started_at) VALUES (?, ?, 'running', ?)",
            (kind, prompt[:PROMPT_PREVIEW_CHARS], datetime.utcnow().isoformat()),
        )
        await self._db.commit()
        return cursor.lastrowid

    async def finish_request(
        self,
        request_id: int,
        duration_ms: int,
        response_chars: Optional[int] = None,
        error_kind: Optional[str] = None,
        error_message: Optional[str] = None,
    ):
        """Mark a request completed, or failed when ``error_kind`` is given."""
        status = "failed" if error_kind else "completed"
        await self._db.execute(
            """
            UPDATE requests
            SET status = ?, error_kind = ?, error_message = ?, response_chars = ?,
                completed_at = ?, duration_ms = ?
            WHERE id = ?
            """,
            (
                status, error_kind, error_message, response_chars,
                datetime.utcnow().isoformat(), duration_ms, request_id,
            ),
        )
        await self._db.commit()

    async def add_media(self, result: ImageResult, topic: str) -> MediaRecord:
        """Record an image that generate_image stored on disk."""
        record = MediaRecord(
            filename=result.filename,
            url=result.url,
            topic=topic,
            alt=result.alt,
            caption=result.caption,
            source_kind=result.source_kind or "",
            mime_type=result.mime_type,
            file_size=result.file_size,
        )
        await self._db.execute(
            """
            INSERT INTO media (
                filename, url, topic, alt, caption, source_kind, mime_type, file_size, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.filename, record.url, record.topic, record.alt, record.caption,
                record.source_kind, record.mime_type, record.file_size, record.created_at,
            ),
        )
        await self._db.commit()
        return record

    async def list_media(self, limit: int = 25, topic: str = "") -> list[MediaRecord]:
        """Most recent images first, optionally filtered by topic substring."""
        conditions = []
        params: list = []
        if topic:
            conditions.append("LOWER(topic) LIKE ?")
            params.append(f"%{topic.lower()}%")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        query = f"SELECT * FROM media {where} ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)

        async with self._db.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            col_names = [d[0] for d in cursor.description]
        records = []
        for row in rows:
            data = dict(zip(col_names, row))
            data.pop("id", None)
            records.append(MediaRecord(**data))
        return records

    async def get_stats(self) -> dict:
        """Aggregate request counts, failure kinds and timings."""
        stats = {}

        async with self._db.execute("SELECT COUNT(*) FROM requests") as cursor:
            stats["total_requests"] = (await cursor.fetchone())[0]

        async with self._db.execute(
            "SELECT status, COUNT(*) FROM requests GROUP BY status"
        ) as cursor:
            stats["by_status"] = {row[0]: row[1] async for row in cursor}

        async with self._db.execute(
            "SELECT kind, COUNT(*) FROM requests GROUP BY kind"
        ) as cursor:
            stats["by_kind"] = {row[0]: row[1] async for row in cursor}

        async with self._db.execute(
            "SELECT error_kind, COUNT(*) FROM requests WHERE error_kind IS NOT NULL GROUP BY error_kind"
        ) as cursor:
            stats["errors"] = {row[0]: row[1] async for row in cursor}

        async with self._db.execute(
            "SELECT AVG(duration_ms) FROM requests WHERE status = 'completed'"
        ) as cursor:
            row = await cursor.fetchone()
            stats["avg_duration_ms"] = round(row[0]) if row[0] else 0

        async with self._db.execute("SELECT COUNT(*) FROM media") as cursor:
            stats["media_count"] = (await cursor.fetchone())[0]

        async with self._db.execute("SELECT MAX(started_at) FROM requests") as cursor:
            row = await cursor.fetchone()
            stats["last_request_time"] = row[0] if row[0] else None

        return stats
