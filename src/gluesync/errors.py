"""Error taxonomy & redaction.

Public API:
- ConfigError: fatal configuration problems (missing credentials)
- classify_error(exc) -> ErrorInfo
- redact(text) -> str

API client errors (``GitHubAPIError``, ``JiraAPIError``) subclass
:class:`APIError` so callers can log them per operation and carry on.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
    re.compile(r"(?i)(bearer\s+)[A-Za-z0-9._\-]{8,}"),
]

_REDACTION_PLACEHOLDER = "<redacted>"

HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_TOO_MANY_REQUESTS = 429


class ConfigError(RuntimeError):
    pass


class APIError(RuntimeError):
    """Raised when a remote tracker API returns an error."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        if pat.groups:
            redacted = pat.sub(lambda m: m.group(1) + _REDACTION_PLACEHOLDER, redacted)
        else:
            redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def _classify_status(status: int) -> tuple[str, bool] | None:
    if status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
        return "auth", False
    if status == HTTP_NOT_FOUND:
        return "not_found", False
    if status == HTTP_TOO_MANY_REQUESTS:
        return "rate_limit", True
    return None


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    HTTP status on :class:`APIError` wins; otherwise message keywords decide
    between rate limit, network and generic.
    """
    msg = str(exc) if exc else ""
    low = msg.lower()
    name = exc.__class__.__name__

    status = getattr(exc, "status", None)
    if isinstance(status, int):
        by_status = _classify_status(status)
        if by_status is not None:
            category, transient = by_status
            return ErrorInfo(category, redact(msg), name, transient=transient, details={"status": status})

    if "rate limit" in low or "secondary rate" in low:
        return ErrorInfo("rate_limit", redact(msg), name, transient=True)
    if any(k in low for k in ("timeout", "timed out", "connection reset", "temporarily unavailable", "connection")):
        return ErrorInfo("network", redact(msg), name, transient=True)
    return ErrorInfo("generic", redact(msg), name)


__all__ = ["APIError", "ConfigError", "ErrorInfo", "classify_error", "redact"]
