"""Tavily search client, the alternate search provider.

Tavily has no dedicated exact/exclude parameters, so the refinements are
folded into the query string using the usual operators ("..." and -term).
Tavily does not paginate; ``start`` is applied by over-fetching and slicing.
"""

from utils.logger import get_logger

from .contracts import SearchParams, SearchResult
from .google_search_client import SearchProviderError

logger = get_logger(__name__)

PAGE_SIZE = 10
MAX_RESULTS = 20  # Tavily's upper bound on max_results


def build_query(params: SearchParams) -> str:
    query = params.query.strip()
    if params.exact_terms:
        query = f'{query} "{params.exact_terms.strip()}"'
    if params.exclude_terms:
        query += "".join(f" -{term}" for term in params.exclude_terms.split())
    return query


class TavilySearchClient:
    """Tavily-powered search client."""

    def __init__(self, api_key: str, *, client=None):
        """
        Initialize Tavily client.

        Args:
            api_key: Tavily API key
            client: Pre-built TavilyClient (tests pass a stub)
        """
        if not api_key:
            raise ValueError("TAVILY_API_KEY not found in environment")
        self.api_key = api_key

        if client is None:
            # Lazy import so CI/tests don't require tavily unless this provider is selected
            try:
                from tavily import TavilyClient
            except ModuleNotFoundError as e:
                raise ModuleNotFoundError(
                    "Optional dependency 'tavily' is not installed. "
                    "Install it to use SEARCH_PROVIDER=tavily: pip install tavily-python"
                ) from e
            client = TavilyClient(api_key=self.api_key)

        self.client = client
        logger.info("Tavily client initialized")

    def search(self, params: SearchParams) -> list[SearchResult]:
        """
        Run one query.

        Raises:
            SearchProviderError: the Tavily SDK raised
        """
        offset = (params.start or 1) - 1
        if offset >= MAX_RESULTS:
            return []
        query = build_query(params)
        logger.info(f"Tavily search: '{query}' (start={params.start})")

        try:
            response = self.client.search(
                query=query,
                max_results=min(offset + PAGE_SIZE, MAX_RESULTS),
                search_depth="basic",
                include_raw_content=False,
                include_answer=False,
            )
        except Exception as e:
            raise SearchProviderError(f"Tavily search failed: {type(e).__name__}: {e}") from e

        results = []
        for result in (response.get("results") or [])[offset:offset + PAGE_SIZE]:
            url = (result.get("url") or "").strip()
            if not url:
                continue
            results.append(
                SearchResult(
                    title=result.get("title") or url,
                    url=url,
                    snippet=(result.get("content") or "").strip(),
                )
            )

        logger.info(f"Tavily returned {len(results)} results")
        return results

    def close(self) -> None:
        pass
