"""Adapter-internal exceptions.

Adapters raise these inside ``_fetch``; ``BaseSourceAdapter.fetch`` turns them
into a ``FetchOutcome`` so nothing crosses the adapter boundary.
"""

from typing import Any

from models.document import FailureReason


class SourceError(Exception):
    reason: FailureReason = FailureReason.UPSTREAM_ERROR

    def __init__(self, message: str, *, retry_after: float | None = None, **details: Any):
        super().__init__(message)
        self.message = message
        self.retry_after = retry_after
        self.details = details


class NotFoundError(SourceError):
    reason = FailureReason.NOT_FOUND


class MalformedSourceError(SourceError):
    reason = FailureReason.MALFORMED_SOURCE


class RateLimitedError(SourceError):
    reason = FailureReason.RATE_LIMITED


class UpstreamError(SourceError):
    reason = FailureReason.UPSTREAM_ERROR


class AuthError(SourceError):
    reason = FailureReason.AUTH_ERROR


class ServiceUnavailableError(SourceError):
    reason = FailureReason.SERVICE_UNAVAILABLE
