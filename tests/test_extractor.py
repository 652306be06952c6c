"""Text selection, image candidate filtering, and artifact capture."""

import pytest

from blogsmith.errors import EmptyResponseError, NoImageFoundError, NoResponseError
from blogsmith.models.artifact import ImageCandidate
from blogsmith.session_manager.extractor import (
    ResponseExtractor,
    pick_image_candidate,
    select_response_text,
)
from conftest import FakeElement, FakePage

LONG_CODE = "x = 1\n" * 20
LONG_MARKDOWN = "This paragraph is comfortably longer than fifty characters of prose."


def response_html(code=None, markdown=None, extra="Intro line."):
    parts = [f"<p>{extra}</p>"]
    if markdown is not None:
        parts.append(f'<div class="markdown"><p>{markdown}</p></div>')
    if code is not None:
        parts.append(f'<pre><code class="language-python">{code}</code></pre>')
    return "".join(parts)


class TestSelectResponseText:
    def test_code_block_beats_markdown(self):
        html = response_html(code=LONG_CODE, markdown=LONG_MARKDOWN)
        assert select_response_text(html) == LONG_CODE.strip()

    def test_markdown_beats_raw_text(self):
        html = response_html(markdown=LONG_MARKDOWN)
        assert select_response_text(html) == LONG_MARKDOWN

    def test_short_code_block_falls_through_to_markdown(self):
        html = response_html(code="ok", markdown=LONG_MARKDOWN)
        assert select_response_text(html) == LONG_MARKDOWN

    def test_short_blocks_fall_back_to_raw_text(self):
        html = response_html(code="ok", markdown="short", extra="Hello")
        assert select_response_text(html) == "Helloshortok"

    def test_plain_response(self):
        assert select_response_text("<p>pong</p>") == "pong"

    def test_threshold_is_configurable(self):
        html = response_html(code="print(1)", markdown=LONG_MARKDOWN)
        assert select_response_text(html, min_length=5) == "print(1)"


class TestExtractText:
    async def test_returns_latest_response(self):
        page = FakePage()
        page.responses = [FakeElement("<p>old answer</p>"), FakeElement("<p>new answer</p>")]
        assert await ResponseExtractor().extract_text(page) == "new answer"

    async def test_one_character_is_empty(self):
        page = FakePage()
        page.responses = [FakeElement("<p> x </p>")]
        with pytest.raises(EmptyResponseError):
            await ResponseExtractor().extract_text(page)

    async def test_no_container(self):
        with pytest.raises(NoResponseError):
            await ResponseExtractor().extract_text(FakePage())

    async def test_only_earlier_answers_is_no_response(self):
        page = FakePage()
        page.responses = [FakeElement("<p>previous answer</p>")]
        with pytest.raises(NoResponseError):
            await ResponseExtractor().extract_text(page, baseline=1)


def candidate(index, **kwargs):
    defaults = {"tag": "img", "src": f"https://lh3.example.com/gen{index}.png", "width": 512, "height": 512}
    defaults.update(kwargs)
    return ImageCandidate(index=index, **defaults)


class TestPickImageCandidate:
    def test_skips_chrome(self):
        candidates = [
            candidate(0, src="https://x/avatar.png", width=1024, height=1024),
            candidate(1, alt="Gemini logo", width=1024, height=1024),
            candidate(2, class_name="mat-icon", width=1024, height=1024),
            candidate(3),
        ]
        assert pick_image_candidate(candidates).index == 3

    def test_skips_small_elements(self):
        candidates = [candidate(0, width=48, height=48), candidate(1, width=800, height=150)]
        assert pick_image_candidate(candidates) is None

    def test_prefers_largest(self):
        candidates = [candidate(0, width=300, height=300), candidate(1, tag="canvas", src="", width=900, height=900)]
        assert pick_image_candidate(candidates).index == 1

    def test_fetchable_only_for_http_images(self):
        assert candidate(0).fetchable
        assert not candidate(0, src="blob:https://gemini.google.com/abc").fetchable
        assert not candidate(0, tag="canvas", src="").fetchable


class TestExtractImage:
    async def test_canvas_falls_back_to_screenshot(self, clock):
        canvas = FakeElement(info={"tag": "canvas", "src": "", "alt": "", "class_name": "", "width": 800, "height": 800})
        page = FakePage(clock)
        page.responses = [FakeElement(children=[canvas])]

        artifact = await ResponseExtractor(clock=clock, sleep=clock.sleep).extract_image(page)

        assert artifact.kind == "screenshot"
        assert artifact.mime_type == "image/png"
        assert canvas.scrolled

    async def test_failed_download_falls_back_to_screenshot(self, clock):
        img = FakeElement(info={"tag": "img", "src": "https://img.example/gen.png", "alt": "a lighthouse",
                                "class_name": "", "width": 1024, "height": 1024})
        page = FakePage(clock)
        page.responses = [FakeElement(children=[img])]
        extractor = ResponseExtractor(clock=clock, sleep=clock.sleep)

        async def broken_download(page, url):
            raise ConnectionError("refused")

        extractor._download = broken_download
        artifact = await extractor.extract_image(page)

        assert artifact.kind == "screenshot"
        assert artifact.alt == "a lighthouse"

    async def test_url_download(self, clock):
        img = FakeElement(info={"tag": "img", "src": "https://img.example/gen.jpg", "alt": "",
                                "class_name": "", "width": 1024, "height": 768})
        page = FakePage(clock)
        page.responses = [FakeElement(children=[img])]
        extractor = ResponseExtractor(clock=clock, sleep=clock.sleep)

        async def fake_download(page, url):
            return b"jpeg-bytes", "image/jpeg"

        extractor._download = fake_download
        artifact = await extractor.extract_image(page)

        assert artifact.kind == "url"
        assert artifact.source_url == "https://img.example/gen.jpg"
        assert artifact.data == b"jpeg-bytes"
        assert not img.scrolled

    async def test_gives_up_after_bounded_poll(self, clock):
        icon = FakeElement(info={"tag": "img", "src": "https://x/icon.svg", "alt": "", "class_name": "",
                                 "width": 24, "height": 24})
        page = FakePage(clock)
        page.responses = [FakeElement(children=[icon])]
        extractor = ResponseExtractor(image_poll_interval_ms=1500, image_timeout_ms=6000,
                                      clock=clock, sleep=clock.sleep)

        with pytest.raises(NoImageFoundError):
            await extractor.extract_image(page)

        assert clock.now >= 6.0
        assert set(clock.sleeps) == {1.5}
