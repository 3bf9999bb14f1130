"""
Exception types used across the Plugin Studio backend.

Routers map these onto single actionable HTTP answers, so callers can tell
a broken credential from an exhausted model list.
"""

from __future__ import annotations


class PluginStudioError(Exception):
    """Base class for all Plugin Studio errors."""


class ConfigurationError(PluginStudioError):
    """Raised when required configuration (the API key) is missing."""


class LLMServiceError(PluginStudioError):
    """Raised when a completion request fails."""

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class AuthError(LLMServiceError):
    """401/403 from the provider. Not model specific."""


class JsonModeRejected(LLMServiceError):
    """400 while response_format was requested."""


class TransientServiceError(LLMServiceError):
    """5xx, 429, other 4xx or a network failure."""


class StreamInterrupted(LLMServiceError):
    """A stream broke after tokens reached the observer; never replayed."""


def error_for_status(status: int, body: str) -> LLMServiceError:
    """Build the error matching an HTTP status from the completion endpoint."""
    message = f"OpenAI error {status}: {body}"
    if status in (401, 403):
        return AuthError(message, status=status, body=body)
    return TransientServiceError(message, status=status, body=body)


def describe_error(error: Exception) -> tuple[int, str]:
    """HTTP status and one actionable message for an error"""
    if isinstance(error, ConfigurationError):
        return 400, f"{error}. Add your API key in settings."
    if isinstance(error, AuthError):
        return 401, "Auth error (401/403). Check your API key."
    if isinstance(error, LLMServiceError):
        if error.status == 429:
            return 429, "Rate limited. Retrying may help soon."
        if error.status == 400 and "unsupported" in error.body.lower():
            return 502, "Model rejected params; we automatically retried."
        return 502, f"AI error: {error}"
    return 500, f"Unexpected error: {error}"
