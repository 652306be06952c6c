"""Exception taxonomy for the Gemini automation core.

Every error carries a machine-readable ``kind`` and a ``retryable`` flag.
Retryable errors are transient page states where running the whole operation
again can succeed; the rest need an operator (log in, fix selectors).
"""

from __future__ import annotations


class AutomationError(Exception):
    """Base class for all automation failures."""

    kind = "automation"
    retryable = False

    def to_dict(self) -> dict:
        return {"error": str(self), "kind": self.kind, "retryable": self.retryable}


class SessionError(AutomationError):
    """The browser session could not be established or re-established."""

    kind = "session"
    retryable = True


class LoginTimeoutError(SessionError):
    """Nobody completed the Google login within the bounded wait."""

    kind = "login_timeout"
    retryable = False


class InputError(AutomationError):
    """The prompt input could not be located or written to."""

    kind = "input"
    retryable = False


class NoResponseError(AutomationError):
    """No response container appeared after submitting a prompt."""

    kind = "no_response"
    retryable = True


class ResponseTimeoutError(AutomationError):
    """The completion verdict was never accepted (strict mode only)."""

    kind = "response_timeout"
    retryable = True


class EmptyResponseError(AutomationError):
    """Extraction produced a degenerate payload."""

    kind = "empty_response"
    retryable = True


class NoImageFoundError(AutomationError):
    """No generated image showed up in the latest response."""

    kind = "no_image"
    retryable = True
