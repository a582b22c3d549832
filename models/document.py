from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class SourceKind(str, Enum):
    DOCUMENTATION_CORPUS = "documentation_corpus"
    STRUCTURED_QA = "structured_qa"
    SOCIAL_DISCUSSION = "social_discussion"
    GENERIC_EXTERNAL = "generic_external"
    UNKNOWN = "unknown"


class FailureReason(str, Enum):
    NOT_FOUND = "not_found"
    MALFORMED_SOURCE = "malformed_source"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_ERROR = "upstream_error"
    AUTH_ERROR = "auth_error"
    SERVICE_UNAVAILABLE = "service_unavailable"


@dataclass(frozen=True)
class RetrievalRequest:
    url: str
    source_hint: SourceKind | None = None
    search_title: str | None = None  # title shown in the search result, if any

    def __post_init__(self):
        object.__setattr__(self, "url", (self.url or "").strip())


@dataclass(frozen=True)
class NormalizedDocument:
    source_kind: SourceKind
    canonical_url: str
    title: str
    body_text: str
    retrieved_at: str = field(default_factory=utc_timestamp)

    def __post_init__(self):
        if not self.body_text or not self.body_text.strip():
            raise ValueError(f"NormalizedDocument for {self.canonical_url} has an empty body")

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_kind": self.source_kind.value,
            "canonical_url": self.canonical_url,
            "title": self.title,
            "body_text": self.body_text,
            "retrieved_at": self.retrieved_at,
        }


@dataclass(frozen=True)
class FetchFailure:
    reason: FailureReason
    message: str
    source_kind: SourceKind
    retry_after: float | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_configuration_failure(self) -> bool:
        return self.reason == FailureReason.AUTH_ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "reason": self.reason.value,
            "message": self.message,
            "source_kind": self.source_kind.value,
            "retry_after": self.retry_after,
        }


@dataclass(frozen=True)
class FetchOutcome:
    """Result of a single adapter call: exactly one of document / failure is set."""

    document: NormalizedDocument | None = None
    failure: FetchFailure | None = None

    def __post_init__(self):
        if (self.document is None) == (self.failure is None):
            raise ValueError("FetchOutcome requires exactly one of document or failure")

    @classmethod
    def success(cls, document: NormalizedDocument) -> "FetchOutcome":
        return cls(document=document)

    @classmethod
    def fail(
        cls,
        reason: FailureReason,
        message: str,
        source_kind: SourceKind,
        *,
        retry_after: float | None = None,
        details: dict[str, Any] | None = None,
    ) -> "FetchOutcome":
        return cls(
            failure=FetchFailure(
                reason=reason,
                message=message,
                source_kind=source_kind,
                retry_after=retry_after,
                details=details or {},
            )
        )

    @property
    def is_success(self) -> bool:
        return self.document is not None

    @property
    def is_failure(self) -> bool:
        return self.failure is not None


@dataclass(frozen=True)
class AttemptRecord:
    source_kind: SourceKind
    reason: str  # "ok" or a FailureReason value
    latency_ms: int


@dataclass(frozen=True)
class RetrievalResult:
    request: RetrievalRequest
    classified_as: SourceKind
    document: NormalizedDocument | None = None
    failure: FetchFailure | None = None
    attempts: list[AttemptRecord] = field(default_factory=list)
    # AuthError and similar operator-fixable problems; logged, never shown to the agent as a code
    configuration_failures: list[FetchFailure] = field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.document is not None

    @property
    def used_fallback(self) -> bool:
        return any(a.source_kind == SourceKind.GENERIC_EXTERNAL for a in self.attempts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.request.url,
            "classified_as": self.classified_as.value,
            "ok": self.is_success,
            "document": self.document.to_dict() if self.document else None,
            "failure": self.failure.to_dict() if self.failure else None,
            "attempts": [
                {"source_kind": a.source_kind.value, "reason": a.reason, "latency_ms": a.latency_ms}
                for a in self.attempts
            ],
        }
