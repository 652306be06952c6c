"""Completion detection for streamed Gemini responses.

Gemini gives no "done" event, so completion is inferred from three signals
sampled on a fixed interval:

    A  a copy button is visible on the latest response
    B  no stop button (or typing cursor) is visible
    C  the response subtree has not mutated for the stability window

The verdict is ``A or (B and C)`` and must hold for several consecutive
samples before it is accepted. Any mutation between samples resets the
count. Running out of time is reported as a non-completed result rather
than an exception, leaving the decision to the caller.

Signals are read through a ``SignalSource`` so the state machine can be
driven by synthetic DOM timelines in tests.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from typing import Optional, Protocol

from playwright.async_api import Page

from ..constants import SELECTORS
from ..errors import NoResponseError
from ..models.request import CompletionResult, CompletionSettings, CompletionSignals

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class SignalSource(Protocol):
    async def response_present(self) -> bool: ...

    async def attach(self) -> None: ...

    async def sample(self) -> CompletionSignals: ...

    async def detach(self) -> None: ...


_ATTACH_JS = """
([selector, baseline]) => {
    const messages = document.querySelectorAll(selector);
    if (messages.length <= baseline) return false;
    const target = messages[messages.length - 1];
    if (window.__blogsmithObserver) window.__blogsmithObserver.disconnect();
    const state = { last: Date.now(), count: 0 };
    window.__blogsmithMutations = state;
    window.__blogsmithObserver = new MutationObserver((mutations) => {
        if (mutations.some(m => m.type === 'childList' || m.type === 'characterData')) {
            state.last = Date.now();
            state.count += 1;
        }
    });
    window.__blogsmithObserver.observe(target, {
        childList: true, subtree: true, characterData: true, attributes: false,
    });
    return true;
}
"""

_SAMPLE_JS = """
([selector, baseline, copySel, stopSel, typingSel]) => {
    const visible = (el) => !!el && el.offsetParent !== null;
    const messages = document.querySelectorAll(selector);
    const last = messages.length > baseline ? messages[messages.length - 1] : null;
    const state = window.__blogsmithMutations || { last: Date.now(), count: 0 };
    return {
        copy_visible: last ? visible(last.querySelector(copySel)) : false,
        stop_visible: Array.from(document.querySelectorAll(stopSel)).some(visible),
        typing_visible: last ? visible(last.querySelector(typingSel)) : false,
        ms_since_mutation: Date.now() - state.last,
        mutation_count: state.count,
    };
}
"""

_DETACH_JS = """
() => {
    if (window.__blogsmithObserver) window.__blogsmithObserver.disconnect();
    window.__blogsmithObserver = null;
}
"""


class PageSignals:
    """Reads completion signals from a live Gemini page.

    ``baseline`` is the number of response containers that were on the page
    before the prompt was submitted. Only a container past that count belongs
    to the pending prompt.
    """

    def __init__(self, page: Page, container_selector: str = SELECTORS["response"], baseline: int = 0):
        self._page = page
        self._selector = container_selector
        self._baseline = baseline

    async def response_present(self) -> bool:
        containers = await self._page.query_selector_all(self._selector)
        if len(containers) <= self._baseline:
            return False
        return await containers[-1].is_visible()

    async def attach(self) -> None:
        await self._page.evaluate(_ATTACH_JS, [self._selector, self._baseline])

    async def sample(self) -> CompletionSignals:
        raw = await self._page.evaluate(
            _SAMPLE_JS,
            [
                self._selector,
                self._baseline,
                SELECTORS["copy_button"],
                SELECTORS["stop_button"],
                SELECTORS["typing_indicator"],
            ],
        )
        return CompletionSignals(**raw)

    async def detach(self) -> None:
        try:
            await self._page.evaluate(_DETACH_JS)
        except Exception as e:
            logger.debug(f"Observer detach failed: {e}")


class CompletionDetector:
    """Waits until the latest response looks finished, or gives up."""

    def __init__(
        self,
        settings: Optional[CompletionSettings] = None,
        clock=time.monotonic,
        sleep=asyncio.sleep,
    ):
        self.settings = settings or CompletionSettings()
        self._clock = clock
        self._sleep = sleep

    async def wait_for_first_content(self, signals: SignalSource) -> None:
        """Block until the response to the pending prompt is visible.

        Raises:
            NoResponseError: nothing appeared within the first-content bound.
        """
        s = self.settings
        deadline = self._clock() + s.first_content_timeout_ms / 1000
        while not await signals.response_present():
            if self._clock() >= deadline:
                raise NoResponseError(
                    f"No response appeared within {s.first_content_timeout_ms // 1000}s."
                )
            await self._sleep(s.poll_interval_ms / 1000)

    async def wait(self, signals: SignalSource) -> CompletionResult:
        """Run the full state machine: first content, then observe until a verdict."""
        s = self.settings
        logger.info("[DETECT] Waiting for Gemini to finish generating...")
        await self.wait_for_first_content(signals)
        await self._sleep(s.observe_delay_ms / 1000)

        await signals.attach()
        start = self._clock()
        stable_count = 0
        samples = 0
        last_mutations: Optional[int] = None
        snapshot: Optional[CompletionSignals] = None
        try:
            while True:
                elapsed_ms = (self._clock() - start) * 1000
                if elapsed_ms >= s.response_timeout_ms:
                    logger.warning(
                        f"[DETECT] No completion verdict after {elapsed_ms / 1000:.1f}s "
                        f"(stable={stable_count}/{s.stable_checks_needed})"
                    )
                    return CompletionResult(
                        completed=False,
                        reason="timeout",
                        elapsed_ms=elapsed_ms,
                        samples=samples,
                        signals=snapshot,
                    )

                snapshot = await signals.sample()
                samples += 1

                if last_mutations is not None and snapshot.mutation_count != last_mutations:
                    stable_count = 0
                last_mutations = snapshot.mutation_count

                if snapshot.verdict(s.stable_duration_ms):
                    stable_count += 1
                    if stable_count >= s.stable_checks_needed:
                        logger.info(
                            f"[DETECT] Generation complete after {elapsed_ms / 1000:.1f}s "
                            f"(copy={snapshot.copy_visible}, stop={snapshot.stop_visible})"
                        )
                        return CompletionResult(
                            completed=True,
                            reason="verdict",
                            elapsed_ms=elapsed_ms,
                            samples=samples,
                            signals=snapshot,
                        )
                else:
                    stable_count = 0

                await self._sleep(s.poll_interval_ms / 1000)
        finally:
            await signals.detach()
