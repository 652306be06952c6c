"""Local storage for generated images under the public uploads directory."""

from __future__ import annotations

import itertools
import logging
import re
import sys
import time
from pathlib import Path

from ..config import UPLOADS_DIR, UPLOADS_URL_PREFIX
from ..constants import MIME_EXTENSIONS
from ..models.artifact import ImageArtifact, MediaRecord

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")

# Shared across stores so two stores on one directory still never collide
_sequence = itertools.count(1)


def slugify_topic(topic: str, max_length: int = 60) -> str:
    slug = _UNSAFE_CHARS.sub("_", topic.strip().lower())[:max_length].strip("._")
    return slug or "image"


class MediaStore:
    """Writes image artifacts to disk and maps them to served URLs."""

    def __init__(self, uploads_dir: Path = UPLOADS_DIR, url_prefix: str = UPLOADS_URL_PREFIX):
        self.uploads_dir = Path(uploads_dir)
        self.url_prefix = url_prefix.rstrip("/")

    def ensure_dir(self):
        self.uploads_dir.mkdir(parents=True, exist_ok=True)

    def make_filename(self, topic: str, extension: str = "png") -> str:
        """``{timestamp_ms}-{seq}-{slug}.{ext}``; the sequence makes same-millisecond calls unique."""
        timestamp = int(time.time() * 1000)
        return f"{timestamp}-{next(_sequence)}-{slugify_topic(topic)}.{extension}"

    def save(self, artifact: ImageArtifact, topic: str, alt: str = "", caption: str = "") -> MediaRecord:
        """Persist URL-backed and screenshot-backed artifacts the same way."""
        self.ensure_dir()
        extension = MIME_EXTENSIONS.get(artifact.mime_type, "png")
        filename = self.make_filename(topic, extension)
        path = self.uploads_dir / filename
        path.write_bytes(artifact.data)
        logger.info(f"[MEDIA] Saved {artifact.kind} image ({len(artifact.data)} bytes) to {path}")

        return MediaRecord(
            filename=filename,
            url=f"{self.url_prefix}/{filename}",
            topic=topic,
            alt=alt,
            caption=caption,
            source_kind=artifact.kind,
            mime_type=artifact.mime_type,
            file_size=len(artifact.data),
        )
