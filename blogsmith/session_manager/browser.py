"""Camoufox browser automation: launch, login wait, session lifecycle."""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from camoufox.async_api import AsyncCamoufox
from playwright.async_api import BrowserContext, Page, Route

from ..config import (
    BROWSER_HEADLESS,
    BROWSER_PROFILE_DIR,
    BROWSER_TIMEOUT,
    LOGIN_TIMEOUT_MS,
)
from ..constants import BLOCKED_RESOURCE_TYPES, GEMINI_APP_URL, VIEWPORT
from ..errors import AutomationError, SessionError
from ..models.session import SessionStatus
from .login import wait_for_login

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class CamoufoxLauncher:
    """Launches Camoufox with a persistent profile so Google login survives restarts."""

    def __init__(self):
        self._camoufox = None

    async def launch(self, profile_dir: Path, headless: bool) -> BrowserContext:
        profile_dir.mkdir(parents=True, exist_ok=True)
        self._camoufox = AsyncCamoufox(
            headless=headless,
            humanize=True,
            persistent_context=True,
            user_data_dir=str(profile_dir),
            window=(VIEWPORT["width"], VIEWPORT["height"]),
            i_know_what_im_doing=True,
            config={"forceScopeAccess": True},
            disable_coop=True,
        )
        return await self._camoufox.__aenter__()

    async def close(self):
        try:
            if self._camoufox:
                await self._camoufox.__aexit__(None, None, None)
        finally:
            self._camoufox = None


async def _block_heavy_resources(route: Route):
    """Abort images, stylesheets, fonts and media; let everything else through."""
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class BrowserSession:
    """Owns the browser context and the two Gemini pages.

    The primary page serves text queries with heavy resources blocked. The
    image page is opened lazily in the same context and loads everything, so
    generated images actually render.
    """

    def __init__(
        self,
        launcher=None,
        profile_dir: Path = BROWSER_PROFILE_DIR,
        headless: Optional[bool] = None,
        app_url: str = GEMINI_APP_URL,
        login_timeout_ms: int = LOGIN_TIMEOUT_MS,
    ):
        self._launcher = launcher or CamoufoxLauncher()
        self._profile_dir = Path(profile_dir)
        self._headless = headless if headless is not None else BROWSER_HEADLESS
        self._app_url = app_url
        self._login_timeout_ms = login_timeout_ms

        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._image_page: Optional[Page] = None
        self._logged_in: bool = False
        self._context_closed: bool = False
        self._last_used: Optional[str] = None
        self._lock = asyncio.Lock()

    @property
    def is_alive(self) -> bool:
        if self._context is None or self._context_closed:
            return False
        return self._page is not None and not self._page.is_closed()

    @property
    def is_ready(self) -> bool:
        return self.is_alive and self._logged_in

    async def ensure_ready(self) -> Page:
        """Return the primary page, launching or relaunching the browser as needed.

        Raises:
            SessionError: the browser could not be launched or navigated.
            LoginTimeoutError: the login wait expired.
        """
        async with self._lock:
            return await self._ensure_ready_locked()

    async def ensure_image_page(self) -> Page:
        """Return the secondary page used for image generation."""
        async with self._lock:
            await self._ensure_ready_locked()
            if self._image_page is None or self._image_page.is_closed():
                logger.info("Opening image-generation page...")
                self._image_page = await self._open_page(block_resources=False)
            self._touch()
            return self._image_page

    async def _ensure_ready_locked(self) -> Page:
        if self.is_ready:
            self._touch()
            return self._page

        if self._context is not None:
            logger.warning("Browser session is no longer alive, recreating it...")
            await self._teardown()

        try:
            await self._launch()
            existing = self._context.pages[0] if self._context.pages else None
            self._page = await self._open_page(block_resources=True, page=existing)
        except AutomationError:
            await self._teardown()
            raise
        except Exception as e:
            logger.error(f"Failed to initialize browser: {e}")
            await self._teardown()
            raise SessionError(f"Could not initialize browser: {e}") from e

        self._logged_in = True
        self._touch()
        logger.info("Browser initialized successfully.")
        return self._page

    async def _launch(self):
        logger.info(f"Launching Camoufox (headless={self._headless}, profile={self._profile_dir})...")
        self._context_closed = False
        self._context = await self._launcher.launch(self._profile_dir, self._headless)
        self._context.on("close", self._on_context_close)

    def _on_context_close(self, *args):
        logger.warning("Browser context closed.")
        self._context_closed = True
        self._logged_in = False

    async def _open_page(self, block_resources: bool, page: Optional[Page] = None) -> Page:
        if page is None:
            page = await self._context.new_page()
        page.set_default_timeout(BROWSER_TIMEOUT)

        if block_resources:
            await page.route("**/*", _block_heavy_resources)

        logger.info(f"Navigating to {self._app_url}...")
        try:
            await page.goto(self._app_url, wait_until="domcontentloaded", timeout=BROWSER_TIMEOUT)
        except Exception as e:
            logger.warning(f"Navigation timeout, trying with longer wait: {e}")
            try:
                await page.goto(self._app_url, wait_until="commit", timeout=BROWSER_TIMEOUT * 2)
            except Exception as e2:
                raise SessionError(f"Could not open {self._app_url}: {e2}") from e2

        logger.info(f"After navigation, URL: {page.url}")
        await wait_for_login(page, self._login_timeout_ms)
        return page

    def _touch(self):
        self._last_used = datetime.utcnow().isoformat()

    def status(self) -> SessionStatus:
        if self.is_ready:
            state = "active"
        elif self.is_alive:
            state = "needs_login"
        else:
            state = "not_running"
        return SessionStatus(
            is_alive=self.is_alive,
            state=state,
            logged_in=self._logged_in,
            image_page_open=self._image_page is not None and not self._image_page.is_closed(),
            url=self._page.url if self.is_alive else "",
            last_used=self._last_used,
        )

    async def dispose(self):
        """Close the browser. The profile directory keeps the login."""
        async with self._lock:
            await self._teardown()

    async def _teardown(self):
        logger.info("Stopping browser session...")
        self._logged_in = False

        try:
            if self._context and not self._context_closed:
                await self._context.close()
        except Exception as e:
            logger.warning(f"Error closing context: {e}")
        finally:
            self._context = None
            self._page = None
            self._image_page = None

        try:
            await self._launcher.close()
        except Exception as e:
            logger.warning(f"Error closing camoufox: {e}")

        logger.info("Browser session stopped.")
