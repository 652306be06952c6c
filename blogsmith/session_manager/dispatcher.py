"""Prompt submission into the Gemini input box."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional

from playwright.async_api import Page

from ..config import INPUT_SETTLE_MS, INPUT_TIMEOUT_MS
from ..constants import SELECTORS
from ..errors import InputError

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

# Replace the content in one step and let the host UI's framework see it as typing.
_INJECT_JS = """
([selector, text]) => {
    const el = document.querySelector(selector);
    if (!el) return false;
    if (el.tagName === 'TEXTAREA' || el.tagName === 'INPUT') {
        el.value = text;
    } else {
        el.textContent = text;
    }
    el.dispatchEvent(new Event('input', { bubbles: true }));
    return true;
}
"""


def compose_prompt(text: str, system_prompt: Optional[str] = None) -> str:
    """Prefix the system prompt, separated by a blank line."""
    if system_prompt:
        return f"{system_prompt}\n\n{text}"
    return text


class InputDispatcher:
    """Clears the input, injects the prompt, and presses Enter."""

    def __init__(
        self,
        input_timeout_ms: int = INPUT_TIMEOUT_MS,
        settle_ms: int = INPUT_SETTLE_MS,
        sleep=asyncio.sleep,
    ):
        self._input_timeout_ms = input_timeout_ms
        self._settle_ms = settle_ms
        self._sleep = sleep

    async def submit(self, page: Page, prompt: str) -> None:
        """Submit ``prompt`` on ``page``.

        Raises:
            InputError: the input was not found or could not be written.
        """
        selector = SELECTORS["input"]
        try:
            await page.wait_for_selector(selector, state="visible", timeout=self._input_timeout_ms)
        except Exception as e:
            raise InputError(f"Prompt input not found within {self._input_timeout_ms}ms: {e}") from e

        try:
            await page.bring_to_front()
            await self._sleep(0.5)

            # Clear whatever a previous partial interaction left behind
            await page.click(selector)
            await page.keyboard.press("Control+A")
            await page.keyboard.press("Backspace")
            await self._sleep(0.5)

            written = await page.evaluate(_INJECT_JS, [selector, prompt])
        except Exception as e:
            raise InputError(f"Could not write to prompt input: {e}") from e

        if not written:
            raise InputError("Prompt input disappeared before the text was injected.")

        await self._sleep(self._settle_ms / 1000)
        await page.keyboard.press("Enter")
        logger.info(f"[SUBMIT] Query sent ({len(prompt)} chars), waiting for response...")
