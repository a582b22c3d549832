"""Search service: one provider call per query, results annotated with their routing."""

import time
from typing import Protocol

from orchestrator.source_identifier import SourceIdentifier
from utils.logger import fields, get_logger

from .contracts import SearchParams, SearchResponse, SearchResult
from .google_search_client import SearchProviderError

logger = get_logger(__name__)


class SearchClient(Protocol):
    def search(self, params: SearchParams) -> list[SearchResult]: ...

    def close(self) -> None: ...


class SearchService:
    """
    Wraps a search provider client.

    IMPORTANT: search() never raises - provider failures come back as
    SearchResponse.error so the caller decides how to surface them.
    """

    def __init__(self, client: SearchClient, provider: str, identifier: SourceIdentifier | None = None):
        self.client = client
        self.provider = provider
        self.identifier = identifier

    def search(self, params: SearchParams) -> SearchResponse:
        start_time = time.time()
        try:
            results = self.client.search(params)
        except SearchProviderError as e:
            logger.error(
                "Search provider failed",
                extra=fields(provider=self.provider, query=params.query, error=str(e)),
            )
            return SearchResponse(query=params.query, provider=self.provider, error=str(e))
        except Exception as e:
            logger.exception("Search provider raised unexpectedly", extra=fields(provider=self.provider))
            return SearchResponse(
                query=params.query,
                provider=self.provider,
                error=f"Unexpected search error: {type(e).__name__}",
            )

        if self.identifier is not None:
            for result in results:
                result.source_kind = self.identifier.classify(result.url).value

        logger.info(
            "Search completed",
            extra=fields(
                provider=self.provider,
                query=params.query,
                result_count=len(results),
                latency_ms=int((time.time() - start_time) * 1000),
            ),
        )
        return SearchResponse(query=params.query, provider=self.provider, results=results)

    def close(self) -> None:
        self.client.close()
