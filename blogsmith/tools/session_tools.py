"""MCP tools for managing the Gemini browser session."""

from __future__ import annotations

import json

import httpx

from ..config import SESSION_MANAGER_URL

# Long enough for a manual login wait plus a full generation
REQUEST_TIMEOUT_SECONDS = 600.0


async def _call_session_manager(method: str, path: str, json_body: dict | None = None) -> dict:
    """Make a request to the session manager HTTP service."""
    url = f"{SESSION_MANAGER_URL}{path}"
    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS) as client:
            if method == "GET":
                resp = await client.get(url)
            else:
                resp = await client.post(url, json=json_body or {})

            if resp.status_code >= 400:
                data = resp.json()
                return {
                    "error": data.get("error", f"HTTP {resp.status_code}"),
                    "kind": data.get("kind", ""),
                    "retryable": data.get("retryable", False),
                }
            return resp.json()

    except httpx.ConnectError:
        return {
            "error": "Session Manager is not reachable at "
            f"{SESSION_MANAGER_URL}. It should auto-start with the MCP server. "
            "If running standalone: python -m blogsmith.session_manager.manager"
        }
    except httpx.TimeoutException:
        return {"error": "Session Manager timed out. Gemini may still be generating."}
    except Exception as e:
        return {"error": f"Failed to connect to Session Manager: {e}"}


def format_error(result: dict) -> str:
    """Render an error body, with a hint when retrying can help."""
    message = f"Error: {result['error']}"
    if result.get("retryable"):
        message += " (transient, safe to retry)"
    elif result.get("kind") in ("login_timeout", "input"):
        message += " (needs attention in the browser window)"
    return message


async def start_session() -> str:
    """Start the Gemini browser session.

    Launches Camoufox with the persistent profile. If the profile is not
    logged in, the browser window stays open for a manual Google login
    and this call waits for it.

    Returns:
        Session status message.
    """
    result = await _call_session_manager("POST", "/start")

    if "error" in result:
        return format_error(result)

    state = result.get("state", "unknown")
    if state == "active":
        return f"Session is active. {result.get('message', '')}".strip()
    return f"Session state: {state}. {result.get('message', '')}".strip()


async def session_status() -> str:
    """Check whether the Gemini session is alive and what is queued.

    Returns:
        JSON-formatted session status.
    """
    result = await _call_session_manager("GET", "/status")

    if "error" in result:
        return format_error(result)

    return json.dumps(result, indent=2)


async def stop_session() -> str:
    """Close the browser. The profile directory keeps the login.

    Returns:
        Confirmation message.
    """
    result = await _call_session_manager("POST", "/stop")

    if "error" in result:
        return format_error(result)

    return result.get("message", "Session stopped.")
