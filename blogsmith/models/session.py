"""Pydantic models for session state."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class SessionStatus(BaseModel):
    """Current state of the browser session."""

    is_alive: bool = False
    state: str = "not_running"  # not_running, needs_login, active, error
    logged_in: bool = False
    image_page_open: bool = False
    url: str = ""
    last_used: Optional[str] = None
    message: str = ""
    error: Optional[str] = None
