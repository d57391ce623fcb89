# bug_reporter/errors.py
from __future__ import annotations

from typing import Optional


class BugReportError(Exception):
    """Base class for every error raised by the report generator."""


class InputValidationError(BugReportError):
    """Rejected locally before any network call (bad attachment, empty field, unknown entry)."""


class InvalidResponseFormat(BugReportError):
    """The model answered, but not with JSON matching the report schema."""


class LLMConnectionError(RuntimeError):
    """Raised when the LLM service cannot be reached or returns an error."""
    pass


class UpstreamUnavailable(LLMConnectionError):
    """Network failure, 5xx, or circuit breaker open."""


class RateLimited(LLMConnectionError):
    """Quota exhausted (HTTP 429)."""


class AuthError(LLMConnectionError):
    """Credentials rejected (HTTP 401/403)."""


class LLMTimeout(LLMConnectionError):
    """The bounded per-call timeout elapsed."""


class BatchGenerationError(BugReportError):
    """
    One batch-level failure.

    `cause` is the first per-entry failure in submission order and
    `bug_id` the identifier of the entry that produced it.
    """

    def __init__(self, message: str, *, bug_id: Optional[int] = None, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.bug_id = bug_id
        self.cause = cause


class TrackerConfigMissing(BugReportError):
    """Issue tracker settings are incomplete; no request was attempted."""


class TrackerRequestFailed(BugReportError):
    """The issue tracker rejected the request or could not be reached."""
