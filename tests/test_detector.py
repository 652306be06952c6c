"""Completion detector state machine against scripted signal timelines."""

import pytest

from blogsmith.errors import NoResponseError
from blogsmith.models.request import CompletionSignals
from blogsmith.session_manager.detector import CompletionDetector, PageSignals
from conftest import FakeElement, FakePage


class ScriptedSignals:
    """Returns a fixed sequence of samples, repeating the last one forever."""

    def __init__(self, samples, present=True):
        self.samples = list(samples)
        self.present = present
        self.sampled = 0
        self.attached = False
        self.detached = False

    async def response_present(self):
        return self.present

    async def attach(self):
        self.attached = True

    async def sample(self):
        index = min(self.sampled, len(self.samples) - 1)
        self.sampled += 1
        return self.samples[index]

    async def detach(self):
        self.detached = True


class NeverStableSignals(ScriptedSignals):
    """Streaming that never ends: stop button up, DOM mutating on every sample."""

    def __init__(self):
        super().__init__([])

    async def sample(self):
        self.sampled += 1
        return CompletionSignals(stop_visible=True, ms_since_mutation=0, mutation_count=self.sampled)


DONE = CompletionSignals(stop_visible=False, ms_since_mutation=5000)
BUSY = CompletionSignals(stop_visible=True, ms_since_mutation=100)


def make_detector(settings, clock):
    return CompletionDetector(settings, clock=clock, sleep=clock.sleep)


class TestVerdict:
    def test_copy_button_alone_is_enough(self):
        assert CompletionSignals(copy_visible=True, stop_visible=True).verdict(1500)

    def test_quiet_dom_without_stop_button(self):
        assert CompletionSignals(ms_since_mutation=1500).verdict(1500)

    def test_stop_button_blocks_quiet_dom(self):
        assert not CompletionSignals(stop_visible=True, ms_since_mutation=9000).verdict(1500)

    def test_typing_cursor_blocks_quiet_dom(self):
        assert not CompletionSignals(typing_visible=True, ms_since_mutation=9000).verdict(1500)

    def test_recent_mutation_blocks(self):
        assert not CompletionSignals(ms_since_mutation=1000).verdict(1500)


async def test_accepts_after_consecutive_checks(settings, clock):
    signals = ScriptedSignals([DONE])
    result = await make_detector(settings, clock).wait(signals)

    assert result.completed
    assert result.reason == "verdict"
    assert result.samples == settings.stable_checks_needed
    assert signals.attached and signals.detached


async def test_single_favorable_sample_is_not_trusted(settings, clock):
    # Favorable, then busy again: the count must restart from zero
    samples = [DONE, DONE, DONE, BUSY] + [DONE] * 5
    signals = ScriptedSignals(samples)
    result = await make_detector(settings, clock).wait(signals)

    assert result.completed
    assert result.samples == 9


async def test_mutation_between_samples_resets_count(settings, clock):
    samples = [
        CompletionSignals(copy_visible=True, mutation_count=0),
        CompletionSignals(copy_visible=True, mutation_count=0),
        CompletionSignals(copy_visible=True, mutation_count=0),
        CompletionSignals(copy_visible=True, mutation_count=1),
    ]
    signals = ScriptedSignals(samples)
    result = await make_detector(settings, clock).wait(signals)

    # Reset on the 4th sample, which counts as 1; four more are needed
    assert result.completed
    assert result.samples == 8


async def test_never_stable_dom_times_out_without_raising(settings, clock):
    settings.response_timeout_ms = 10000
    signals = NeverStableSignals()
    result = await make_detector(settings, clock).wait(signals)

    assert not result.completed
    assert result.reason == "timeout"
    assert result.elapsed_ms >= 10000
    assert signals.detached
    # Bounded: roughly one sample per poll interval
    assert signals.sampled <= 10000 // settings.poll_interval_ms + 1


async def test_no_response_container_raises(settings, clock):
    settings.first_content_timeout_ms = 3000
    signals = ScriptedSignals([DONE], present=False)

    with pytest.raises(NoResponseError):
        await make_detector(settings, clock).wait(signals)

    assert clock.now >= 3.0
    assert not signals.attached


async def test_observe_delay_before_attach(settings, clock):
    signals = ScriptedSignals([DONE])
    await make_detector(settings, clock).wait(signals)
    assert clock.sleeps[0] == pytest.approx(settings.observe_delay_ms / 1000)


class TestPageSignalsPresence:
    async def test_earlier_answers_do_not_count(self):
        page = FakePage()
        page.responses = [FakeElement("<p>previous answer</p>")]
        signals = PageSignals(page, baseline=1)

        assert not await signals.response_present()

        page.responses.append(FakeElement("<p>second answer</p>"))
        assert await signals.response_present()

    async def test_new_container_must_be_visible(self):
        page = FakePage()
        hidden = FakeElement("")
        hidden.visible = False
        page.responses = [hidden]
        signals = PageSignals(page)

        assert not await signals.response_present()

        hidden.visible = True
        assert await signals.response_present()
