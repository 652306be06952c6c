"""Gemini automation client: the single entry point for text and image requests.

    caller -> RequestSerializer -> BrowserSession.ensure_ready
           -> InputDispatcher.submit -> CompletionDetector.wait
           -> (settle delay) -> ResponseExtractor -> caller
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Awaitable, Callable, Optional

from playwright.async_api import Error as PlaywrightError

from ..config import COOLDOWN_MS, DEFAULT_DOM_DELAY_MS, STRICT_COMPLETION
from ..constants import SELECTORS
from ..errors import AutomationError, ResponseTimeoutError, SessionError
from ..models.artifact import ImageResult
from ..models.request import CompletionResult, RetryPolicy
from ..models.session import SessionStatus
from .browser import BrowserSession
from .detector import CompletionDetector, PageSignals
from .dispatcher import InputDispatcher, compose_prompt
from .extractor import ResponseExtractor
from .media import MediaStore
from .serializer import RequestSerializer

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class GeminiClient:
    """Drives the Gemini web UI for text queries and image generation.

    Text queries and image requests share one serializer, so at most one
    browser operation runs at a time across both pages. Every collaborator can be
    injected, which is how the tests run the whole flow without a browser.
    """

    def __init__(
        self,
        session: Optional[BrowserSession] = None,
        dispatcher: Optional[InputDispatcher] = None,
        detector: Optional[CompletionDetector] = None,
        extractor: Optional[ResponseExtractor] = None,
        media_store: Optional[MediaStore] = None,
        serializer: Optional[RequestSerializer] = None,
        signals_factory: Callable = PageSignals,
        retry_policy: Optional[RetryPolicy] = None,
        strict_completion: bool = STRICT_COMPLETION,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
    ):
        self.session = session or BrowserSession()
        self.dispatcher = dispatcher or InputDispatcher()
        self.detector = detector or CompletionDetector()
        self.extractor = extractor or ResponseExtractor()
        self.media_store = media_store or MediaStore()
        self.serializer = serializer or RequestSerializer(COOLDOWN_MS / 1000)
        self.retry_policy = retry_policy or RetryPolicy()
        self._signals_factory = signals_factory
        self._strict_completion = strict_completion
        self._sleep = sleep

    # ── Session ──────────────────────────────────────────────────────────────

    async def start(self) -> SessionStatus:
        """Launch the browser and wait for login if needed."""
        await self.session.ensure_ready()
        status = self.session.status()
        status.message = "Session active."
        return status

    def status(self) -> SessionStatus:
        return self.session.status()

    async def stop(self):
        await self.session.dispose()

    # ── Text ─────────────────────────────────────────────────────────────────

    async def send_query(
        self,
        text: str,
        system_prompt: Optional[str] = None,
        dom_delay_ms: int = DEFAULT_DOM_DELAY_MS,
        retry: Optional[RetryPolicy] = None,
    ) -> str:
        """Send ``text`` (prefixed by ``system_prompt``) and return Gemini's answer."""
        prompt = compose_prompt(text, system_prompt)
        return await self._with_retry(
            lambda: self.serializer.run(self._query_once, prompt, dom_delay_ms, label="query"),
            retry,
            "QUERY",
        )

    async def _query_once(self, prompt: str, dom_delay_ms: int) -> str:
        try:
            page = await self.session.ensure_ready()
            baseline = await self._count_responses(page, SELECTORS["response"])
            logger.info("[QUERY] Sending query to Gemini...")
            await self.dispatcher.submit(page, prompt)

            signals = self._signals_factory(page, SELECTORS["response"], baseline)
            result = await self.detector.wait(signals)
            self._check_completion(result)

            logger.info(f"[QUERY] DOM settle delay ({dom_delay_ms}ms)...")
            await self._sleep(dom_delay_ms / 1000)
            return await self.extractor.extract_text(page, baseline=baseline)
        except PlaywrightError as e:
            raise SessionError(f"Browser interaction failed: {e}") from e

    # ── Images ───────────────────────────────────────────────────────────────

    async def generate_image(
        self, prompt: str, topic: str = "", retry: Optional[RetryPolicy] = None
    ) -> ImageResult:
        """Ask Gemini for an image and store it under the uploads directory."""
        return await self._with_retry(
            lambda: self.serializer.run(self._image_once, prompt, topic, label="image"),
            retry,
            "IMAGE",
        )

    async def _image_once(self, prompt: str, topic: str) -> ImageResult:
        try:
            page = await self.session.ensure_image_page()
            baseline = await self._count_responses(page, SELECTORS["image_response"])
            logger.info(f"[IMAGE] Sending image generation request for '{topic}'...")
            await self.dispatcher.submit(page, prompt)

            signals = self._signals_factory(page, SELECTORS["image_response"], baseline)
            result = await self.detector.wait(signals)
            self._check_completion(result)
            artifact = await self.extractor.extract_image(page, baseline=baseline)
        except PlaywrightError as e:
            raise SessionError(f"Browser interaction failed: {e}") from e

        label = topic or "your blog"
        alt = f"Hero image for {topic}" if topic else (artifact.alt or "Generated image")
        caption = f"AI-generated illustration for {label}"
        record = self.media_store.save(artifact, topic, alt=alt, caption=caption)

        logger.info(f"[IMAGE] Image generated successfully: {record.url}")
        return ImageResult(
            success=True,
            url=record.url,
            alt=alt,
            caption=caption,
            filename=record.filename,
            source_kind=record.source_kind,
            mime_type=record.mime_type,
            file_size=record.file_size,
        )

    # ── Helpers ──────────────────────────────────────────────────────────────

    async def _count_responses(self, page, selector: str) -> int:
        """Responses already on the page; the answer to a new prompt comes after these."""
        return len(await page.query_selector_all(selector))

    def _check_completion(self, result: CompletionResult):
        if result.completed:
            return
        if self._strict_completion:
            raise ResponseTimeoutError(
                f"Response did not finish within {result.elapsed_ms / 1000:.0f}s."
            )
        logger.warning("Completion not confirmed, extracting best-effort content.")

    async def _with_retry(self, attempt_fn: Callable[[], Awaitable], retry: Optional[RetryPolicy], tag: str):
        policy = retry or self.retry_policy
        attempt = 1
        while True:
            try:
                return await attempt_fn()
            except AutomationError as e:
                if not e.retryable or attempt >= policy.max_attempts:
                    logger.error(f"[{tag}] Request failed ({e.kind}): {e}")
                    raise
                delay = policy.delay_for(attempt)
                logger.warning(
                    f"[{tag}] Attempt {attempt}/{policy.max_attempts} failed ({e.kind}): {e}. "
                    f"Retrying in {delay:.1f}s..."
                )
                await self._sleep(delay)
                attempt += 1
