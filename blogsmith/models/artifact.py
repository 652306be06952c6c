"""Pydantic models for extracted artifacts and stored media."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class ImageCandidate(BaseModel):
    """An img/canvas element found in the latest response."""

    index: int
    tag: str = "img"
    src: str = ""
    alt: str = ""
    class_name: str = ""
    width: float = 0.0
    height: float = 0.0

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def fetchable(self) -> bool:
        return self.tag == "img" and self.src.startswith(("http://", "https://"))


class ImageArtifact(BaseModel):
    """Image bytes pulled out of the page, either downloaded or screenshotted."""

    kind: Literal["url", "screenshot"]
    data: bytes
    mime_type: str = "image/png"
    source_url: str = ""
    alt: str = ""


class MediaRecord(BaseModel):
    """A generated image persisted under the uploads directory."""

    filename: str
    url: str
    topic: str = ""
    alt: str = ""
    caption: str = ""
    source_kind: str = ""
    mime_type: str = ""
    file_size: int = 0
    created_at: str = Field(
        default_factory=lambda: datetime.utcnow().isoformat()
    )


class ImageResult(BaseModel):
    """What generate_image hands back to the caller."""

    success: bool
    url: str = ""
    alt: str = ""
    caption: str = ""
    filename: str = ""
    source_kind: Optional[str] = None
    mime_type: str = ""
    file_size: int = 0
