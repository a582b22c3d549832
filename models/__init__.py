"""
Models package for retrieval requests, normalized documents and fetch outcomes.
"""

from .document import (
    AttemptRecord,
    FailureReason,
    FetchFailure,
    FetchOutcome,
    NormalizedDocument,
    RetrievalRequest,
    RetrievalResult,
    SourceKind,
)

__all__ = [
    "AttemptRecord",
    "FailureReason",
    "FetchFailure",
    "FetchOutcome",
    "NormalizedDocument",
    "RetrievalRequest",
    "RetrievalResult",
    "SourceKind",
]
