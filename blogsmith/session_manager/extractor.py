"""Pull the final text or generated image out of the latest Gemini response."""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from typing import Optional

import httpx
from bs4 import BeautifulSoup
from playwright.async_api import ElementHandle, Page

from ..config import (
    IMAGE_POLL_INTERVAL_MS,
    IMAGE_TIMEOUT_MS,
    MIN_BLOCK_LENGTH,
    MIN_IMAGE_SIZE,
)
from ..constants import GEMINI_BASE, IMAGE_CHROME_MARKERS, SELECTORS
from ..errors import EmptyResponseError, NoImageFoundError, NoResponseError
from ..models.artifact import ImageArtifact, ImageCandidate

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

_DESCRIBE_JS = """
(el) => {
    const rect = el.getBoundingClientRect();
    return {
        tag: el.tagName.toLowerCase(),
        src: el.currentSrc || el.src || '',
        alt: el.alt || el.getAttribute('aria-label') || '',
        class_name: (typeof el.className === 'string' ? el.className : '') +
            ' ' + (el.parentElement ? el.parentElement.className || '' : ''),
        width: rect.width,
        height: rect.height,
    };
}
"""


def select_response_text(html: str, min_length: int = MIN_BLOCK_LENGTH) -> str:
    """Pick the payload out of a response container's inner HTML.

    A code block longer than ``min_length`` wins (the model wrapped its output
    in a fence), then a markdown block longer than ``min_length``, then the
    container's full text.
    """
    soup = BeautifulSoup(html, "html.parser")

    code = soup.select_one(SELECTORS["code_block"])
    if code is not None:
        text = code.get_text().strip()
        if len(text) > min_length:
            return text

    markdown = soup.select_one(SELECTORS["markdown"])
    if markdown is not None:
        text = markdown.get_text().strip()
        if len(text) > min_length:
            return text

    return soup.get_text().strip()


def _looks_like_chrome(candidate: ImageCandidate) -> bool:
    haystack = f"{candidate.src} {candidate.alt} {candidate.class_name}".lower()
    return any(marker in haystack for marker in IMAGE_CHROME_MARKERS)


def pick_image_candidate(
    candidates: list[ImageCandidate], min_size: int = MIN_IMAGE_SIZE
) -> Optional[ImageCandidate]:
    """Return the largest element that is not icon/avatar chrome and is big enough."""
    eligible = [
        c for c in candidates
        if not _looks_like_chrome(c) and c.width >= min_size and c.height >= min_size
    ]
    if not eligible:
        return None
    return max(eligible, key=lambda c: c.area)


class ResponseExtractor:
    """Reads text or images from the last response container on a page."""

    def __init__(
        self,
        min_block_length: int = MIN_BLOCK_LENGTH,
        min_image_size: int = MIN_IMAGE_SIZE,
        image_poll_interval_ms: int = IMAGE_POLL_INTERVAL_MS,
        image_timeout_ms: int = IMAGE_TIMEOUT_MS,
        clock=time.monotonic,
        sleep=asyncio.sleep,
    ):
        self._min_block_length = min_block_length
        self._min_image_size = min_image_size
        self._image_poll_interval_ms = image_poll_interval_ms
        self._image_timeout_ms = image_timeout_ms
        self._clock = clock
        self._sleep = sleep

    # ── Text ─────────────────────────────────────────────────────────────────

    async def extract_text(self, page: Page, baseline: int = 0) -> str:
        """Return the text of the latest response.

        ``baseline`` is the container count before the prompt was sent; only a
        container past it is an answer to that prompt.

        Raises:
            NoResponseError: no response container past ``baseline``.
            EmptyResponseError: the extracted text is shorter than 2 characters.
        """
        messages = await page.query_selector_all(SELECTORS["response"])
        if len(messages) <= baseline:
            raise NoResponseError("No messages found after waiting.")

        html = await messages[-1].inner_html()
        text = select_response_text(html, self._min_block_length)
        if len(text) < 2:
            raise EmptyResponseError(f"Response too short or empty ({len(text)} characters).")

        logger.info(f"[EXTRACT] Got {len(text)} chars of response text")
        return text

    # ── Images ───────────────────────────────────────────────────────────────

    async def extract_image(self, page: Page, baseline: int = 0) -> ImageArtifact:
        """Wait for a generated image in the latest response and capture it.

        Raises:
            NoImageFoundError: no qualifying element appeared in time.
        """
        deadline = self._clock() + self._image_timeout_ms / 1000
        attempt = 0
        while True:
            attempt += 1
            found = await self._find_image(page, baseline)
            if found is not None:
                candidate, element = found
                logger.info(
                    f"[EXTRACT] Image found on check {attempt}: <{candidate.tag}> "
                    f"{int(candidate.width)}x{int(candidate.height)}"
                )
                return await self._capture(page, candidate, element)

            if self._clock() >= deadline:
                raise NoImageFoundError(
                    f"No generated image found after {self._image_timeout_ms // 1000}s."
                )
            await self._sleep(self._image_poll_interval_ms / 1000)

    async def _find_image(self, page: Page, baseline: int) -> Optional[tuple[ImageCandidate, ElementHandle]]:
        containers = await page.query_selector_all(SELECTORS["image_response"])
        if len(containers) <= baseline:
            return None

        elements = await containers[-1].query_selector_all(SELECTORS["image_candidates"])
        candidates = []
        for index, element in enumerate(elements):
            try:
                info = await element.evaluate(_DESCRIBE_JS)
            except Exception as e:
                logger.debug(f"Skipping detached element {index}: {e}")
                continue
            candidates.append(ImageCandidate(index=index, **info))

        best = pick_image_candidate(candidates, self._min_image_size)
        if best is None:
            return None
        return best, elements[best.index]

    async def _capture(self, page: Page, candidate: ImageCandidate, element: ElementHandle) -> ImageArtifact:
        if candidate.fetchable:
            try:
                data, mime_type = await self._download(page, candidate.src)
                return ImageArtifact(
                    kind="url",
                    data=data,
                    mime_type=mime_type,
                    source_url=candidate.src,
                    alt=candidate.alt,
                )
            except Exception as e:
                logger.warning(f"[EXTRACT] Image download failed, falling back to screenshot: {e}")

        await element.scroll_into_view_if_needed()
        data = await element.screenshot(type="png")
        return ImageArtifact(kind="screenshot", data=data, mime_type="image/png", alt=candidate.alt)

    async def _download(self, page: Page, url: str) -> tuple[bytes, str]:
        """Fetch the image over HTTP with the browser's cookies and user agent."""
        cookies = await page.context.cookies()
        user_agent = await page.evaluate("() => navigator.userAgent")
        jar = {c["name"]: c["value"] for c in cookies if "name" in c and "value" in c}

        async with httpx.AsyncClient(
            cookies=jar,
            headers={"User-Agent": user_agent, "Referer": f"{GEMINI_BASE}/"},
            follow_redirects=True,
            timeout=30.0,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()

        mime_type = response.headers.get("content-type", "image/png").split(";")[0].strip()
        if not mime_type.startswith("image/"):
            raise ValueError(f"Unexpected content type {mime_type!r}")
        return response.content, mime_type
