"""Prompt composition and submission."""

import pytest

from blogsmith.errors import InputError
from blogsmith.session_manager.dispatcher import InputDispatcher, compose_prompt
from conftest import FakePage


def test_compose_prompt():
    assert compose_prompt("ping", "reply with pong") == "reply with pong\n\nping"
    assert compose_prompt("ping") == "ping"
    assert compose_prompt("ping", "") == "ping"


async def test_submit_clears_injects_and_presses_enter(clock):
    page = FakePage(clock)
    dispatcher = InputDispatcher(settle_ms=1000, sleep=clock.sleep)

    await dispatcher.submit(page, "hello gemini")

    assert page.keyboard.presses == ["Control+A", "Backspace", "Enter"]
    assert page.submissions == ["hello gemini"]
    # Settle delay sits between injection and Enter
    assert clock.sleeps[-1] == 1.0


async def test_missing_input_raises_input_error(clock):
    page = FakePage(clock)
    page.input_missing = True

    with pytest.raises(InputError):
        await InputDispatcher(sleep=clock.sleep).submit(page, "hello")

    assert page.submissions == []
