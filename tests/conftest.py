"""Browser-free fakes shared by the tests."""

from __future__ import annotations

import asyncio

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from blogsmith.models.request import CompletionSignals, CompletionSettings


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now = round(self.now + seconds, 6)
        await asyncio.sleep(0)


class FakeKeyboard:
    def __init__(self, page: "FakePage"):
        self._page = page
        self.presses: list[str] = []

    async def press(self, key: str):
        self.presses.append(key)
        if key == "Enter":
            self._page.submitted_at = self._page.clock()
            self._page.submissions.append(self._page.input_text)


class FakeElement:
    def __init__(self, html: str = "", info: dict | None = None, page: "FakePage" = None, children=None):
        self.html = html
        self.info = info or {}
        self.page = page
        self.children = children or []
        self.read_at: list[float] = []
        self.scrolled = False
        self.visible = True

    async def inner_html(self) -> str:
        if self.page is not None:
            self.read_at.append(self.page.clock())
        return self.html

    async def query_selector_all(self, selector: str):
        return list(self.children)

    async def evaluate(self, script: str, arg=None):
        return dict(self.info)

    async def is_visible(self) -> bool:
        return self.visible

    async def scroll_into_view_if_needed(self):
        self.scrolled = True

    async def screenshot(self, type: str = "png") -> bytes:
        return b"\x89PNG screenshot"


class FakeContext:
    def __init__(self, page_factory):
        self._page_factory = page_factory
        self.pages: list[FakePage] = []
        self._handlers: dict[str, list] = {}
        self.closed = False

    def on(self, event: str, callback):
        self._handlers.setdefault(event, []).append(callback)

    async def new_page(self):
        page = self._page_factory(self)
        self.pages.append(page)
        return page

    async def cookies(self):
        return [{"name": "SID", "value": "abc"}]

    def crash(self):
        """Simulate the browser dying underneath us."""
        for page in self.pages:
            page.closed = True
        for callback in self._handlers.get("close", []):
            callback(self)

    async def close(self):
        self.closed = True
        self.crash()


class FakePage:
    """Minimal stand-in for a Playwright Page."""

    def __init__(
        self,
        clock=None,
        context: FakeContext | None = None,
        logged_in: bool = True,
        logs_in_while_waiting: bool = False,
    ):
        self.clock = clock or FakeClock()
        self.context = context
        self.logged_in = logged_in
        self.logs_in_while_waiting = logs_in_while_waiting
        self.login_waits: list[int] = []
        self.closed = False
        self.url = "about:blank"
        self.goto_calls: list[str] = []
        self.routes: list[str] = []
        self.keyboard = FakeKeyboard(self)
        self.input_text = ""
        self.submissions: list[str] = []
        self.submitted_at: float | None = None
        self.input_missing = False
        self.responses: list[FakeElement] = []

    def is_closed(self) -> bool:
        return self.closed

    def set_default_timeout(self, timeout: int):
        self.default_timeout = timeout

    async def route(self, pattern: str, handler):
        self.routes.append(pattern)

    async def goto(self, url: str, wait_until: str = "load", timeout: int = 0):
        self.goto_calls.append(url)
        self.url = url

    async def query_selector(self, selector: str):
        if "textarea" in selector:
            return FakeElement() if self.logged_in else None
        return self.responses[-1] if self.responses else None

    async def query_selector_all(self, selector: str):
        return list(self.responses)

    async def wait_for_selector(self, selector: str, state: str = "visible", timeout: int = 0):
        if "textarea" in selector and not self.logged_in:
            self.login_waits.append(timeout)
            if self.logs_in_while_waiting:
                # The user finishes Google login in the visible window
                self.clock.now += 30
                self.logged_in = True
        if self.input_missing or not self.logged_in:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")
        return FakeElement()

    async def bring_to_front(self):
        pass

    async def click(self, selector: str):
        pass

    async def evaluate(self, script: str, arg=None):
        if isinstance(arg, list) and len(arg) == 2 and isinstance(arg[1], str):
            self.input_text = arg[1]
            return True
        return "Mozilla/5.0 (fake)"


class FakeLauncher:
    def __init__(self, clock=None, logged_in: bool = True, fail: bool = False, logs_in_while_waiting: bool = False):
        self.clock = clock or FakeClock()
        self.logged_in = logged_in
        self.logs_in_while_waiting = logs_in_while_waiting
        self.fail = fail
        self.launch_count = 0
        self.close_count = 0
        self.contexts: list[FakeContext] = []

    async def launch(self, profile_dir, headless):
        if self.fail:
            raise RuntimeError("browser binary missing")
        self.launch_count += 1
        context = FakeContext(
            lambda ctx: FakePage(self.clock, ctx, self.logged_in, self.logs_in_while_waiting)
        )
        # Persistent contexts open with one blank page
        await context.new_page()
        self.contexts.append(context)
        return context

    async def close(self):
        self.close_count += 1


class TimelineSignals:
    """Completion signals scripted relative to the moment Enter was pressed.

    ``render_after``   response container appears and its text is rendered
    ``stop_until``     stop button visible until this offset
    """

    def __init__(self, page: FakePage, render_after: float = 1.0, stop_until: float = 3.0, baseline: int = 0):
        self.page = page
        self.baseline = baseline
        self.render_after = render_after
        self.stop_until = stop_until
        self.attached = False
        self.detached = False

    def _offset(self) -> float:
        return self.page.clock() - self.page.submitted_at

    async def response_present(self) -> bool:
        return self._offset() >= self.render_after

    async def attach(self):
        self.attached = True

    async def sample(self) -> CompletionSignals:
        offset = self._offset()
        return CompletionSignals(
            copy_visible=False,
            stop_visible=offset < self.stop_until,
            ms_since_mutation=(offset - self.render_after) * 1000,
            mutation_count=0,
        )

    async def detach(self):
        self.detached = True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return CompletionSettings(
        poll_interval_ms=500,
        stable_duration_ms=1500,
        stable_checks_needed=5,
        first_content_timeout_ms=120000,
        response_timeout_ms=180000,
        observe_delay_ms=800,
    )
