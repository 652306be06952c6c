"""MCP tools that send prompts to Gemini through the session manager."""

from __future__ import annotations

import json

from ..config import DEFAULT_DOM_DELAY_MS
from .session_tools import _call_session_manager, format_error


async def send_query(
    text: str,
    system_prompt: str = "",
    dom_delay_ms: int = DEFAULT_DOM_DELAY_MS,
) -> str:
    """Send a prompt to Gemini and return the response text.

    Args:
        text: The user prompt.
        system_prompt: Instructions placed before the prompt.
        dom_delay_ms: Extra wait after generation finishes; use
            2000-4000 for long or heavily formatted answers.

    Returns:
        The extracted response text, or an error message.
    """
    body = {"text": text, "dom_delay_ms": dom_delay_ms}
    if system_prompt:
        body["system_prompt"] = system_prompt

    result = await _call_session_manager("POST", "/query", body)

    if "error" in result:
        return format_error(result)

    return result.get("text", "")


async def generate_image(prompt: str, topic: str = "") -> str:
    """Generate an image with Gemini and save it to the uploads directory.

    Args:
        prompt: Image description, e.g. "Generate an image: ...".
        topic: Blog topic used for the filename, alt text and caption.

    Returns:
        JSON with success, url, alt and caption, or an error message.
    """
    result = await _call_session_manager("POST", "/image", {"prompt": prompt, "topic": topic})

    if "error" in result:
        return format_error(result)

    return json.dumps(result, indent=2)
