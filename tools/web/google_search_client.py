"""Google Custom Search JSON API client."""

from typing import Any

import httpx

from utils.logger import get_logger

from .contracts import SearchParams, SearchResult

logger = get_logger(__name__)

GOOGLE_SEARCH_URL = "https://customsearch.googleapis.com/customsearch/v1"


class SearchProviderError(Exception):
    """The search provider could not be queried or answered with an error."""


def _votes(entries: Any) -> list[int]:
    votes = []
    for entry in entries if isinstance(entries, list) else []:
        try:
            votes.append(int(entry.get("upvotecount", "")))
        except (TypeError, ValueError, AttributeError):
            continue
    return votes


def _qa_summary(pagemap: dict[str, Any]) -> str:
    """Vote counts Stack Overflow exposes through the result's pagemap."""
    question_votes = _votes(pagemap.get("question"))
    answer_votes = _votes(pagemap.get("answer"))
    parts = []
    if question_votes:
        parts.append(f"question votes: {question_votes[0]}")
    if answer_votes:
        parts.append(f"answers: {len(answer_votes)}, top answer votes: {max(answer_votes)}")
    return f"({', '.join(parts)})" if parts else ""


class GoogleSearchClient:
    """Thin client for the Custom Search API, one HTTP call per query."""

    def __init__(
        self,
        engine_id: str,
        api_key: str,
        *,
        timeout_s: float = 10.0,
        http_client: httpx.Client | None = None,
        base_url: str = GOOGLE_SEARCH_URL,
    ):
        if not engine_id or not api_key:
            raise ValueError("GOOGLE_SEARCH_ENGINE_ID and GOOGLE_SEARCH_API_KEY are required")
        self.engine_id = engine_id
        self.api_key = api_key
        self.base_url = base_url
        self.http = http_client or httpx.Client(timeout=timeout_s)

    def search(self, params: SearchParams) -> list[SearchResult]:
        """
        Run one query.

        Raises:
            SearchProviderError: transport failure or a non-2xx response
        """
        query: dict[str, Any] = {"q": params.query, "cx": self.engine_id, "key": self.api_key}
        if params.exact_terms:
            query["exactTerms"] = params.exact_terms
        if params.exclude_terms:
            query["excludeTerms"] = params.exclude_terms
        if params.start is not None:
            query["start"] = params.start

        logger.info(f"Google search: '{params.query}' (start={params.start})")
        try:
            response = self.http.get(self.base_url, params=query)
        except httpx.HTTPError as e:
            raise SearchProviderError(f"Google search request failed: {type(e).__name__}") from e

        if response.status_code >= 300:
            message = ""
            try:
                message = (response.json().get("error") or {}).get("message", "")
            except ValueError:
                pass
            raise SearchProviderError(f"Google search returned HTTP {response.status_code} {message}".strip())

        try:
            payload = response.json()
        except ValueError as e:
            raise SearchProviderError("Google search returned a non-JSON body") from e

        results = []
        for item in payload.get("items") or []:
            url = (item.get("link") or "").strip()
            if not url:
                continue
            snippet = (item.get("snippet") or "").replace("\n", " ").strip()
            qa = _qa_summary(item.get("pagemap") or {})
            if qa:
                snippet = f"{snippet} {qa}".strip()
            results.append(SearchResult(title=(item.get("title") or url).strip(), url=url, snippet=snippet))

        logger.info(f"Google returned {len(results)} results")
        return results

    def close(self) -> None:
        self.http.close()
