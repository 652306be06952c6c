"""Login detection for the Gemini UI.

The presence of the prompt input is the proxy for "logged in". When it is
missing we do not fail right away: a human may be completing Google login in
the visible browser window, so we wait for the input to show up.
"""

from __future__ import annotations

import logging
import sys

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..constants import GOOGLE_LOGIN_HOSTS, SELECTORS
from ..errors import LoginTimeoutError

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


def detect_login_redirect(page: Page) -> bool:
    """Check if we've been redirected to a Google sign-in page."""
    url = page.url or ""
    return any(marker in url for marker in GOOGLE_LOGIN_HOSTS)


async def has_input_surface(page: Page) -> bool:
    """Check whether the prompt input is on the page."""
    try:
        element = await page.query_selector(SELECTORS["input"])
    except Exception as e:
        logger.debug(f"Input lookup failed: {e}")
        return False
    return element is not None


async def wait_for_login(page: Page, timeout_ms: int) -> None:
    """Block until the prompt input appears or ``timeout_ms`` elapses.

    Raises:
        LoginTimeoutError: the input never appeared.
    """
    if await has_input_surface(page):
        logger.info("Already logged in.")
        return

    where = "Google sign-in" if detect_login_redirect(page) else page.url
    logger.warning(
        f"NOT LOGGED IN ({where}). Complete the login in the browser window; "
        f"waiting up to {timeout_ms // 1000}s..."
    )
    try:
        await page.wait_for_selector(SELECTORS["input"], timeout=timeout_ms)
    except PlaywrightTimeoutError as e:
        raise LoginTimeoutError(
            f"User did not log in within {timeout_ms // 1000}s."
        ) from e
    logger.info("Login detected.")
