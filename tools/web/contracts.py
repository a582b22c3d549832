"""Data contracts for the web search tool."""

from dataclasses import dataclass, field
from typing import Any

MAX_START = 100  # the provider never returns results past the 100th


@dataclass(frozen=True)
class SearchParams:
    """Query plus the optional refinements the search tool accepts."""

    query: str
    exact_terms: str | None = None
    exclude_terms: str | None = None
    start: int | None = None  # 1-based index of the first result

    def __post_init__(self):
        if not (self.query or "").strip():
            raise ValueError("query must not be empty")
        if self.start is not None and not 1 <= self.start <= MAX_START:
            raise ValueError(f"start must be between 1 and {MAX_START}")


@dataclass
class SearchResult:
    """Result from a search provider."""

    title: str
    url: str
    snippet: str = ""
    source_kind: str = "unknown"  # how fetch_page would route this URL

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "url": self.url, "snippet": self.snippet, "source_kind": self.source_kind}


@dataclass
class SearchResponse:
    """Ranked results, or the reason the provider could not be queried."""

    query: str
    provider: str
    results: list[SearchResult] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
