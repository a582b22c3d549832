"""Factory for creating the search service from configuration."""

from config.config import Config, SearchProvider
from orchestrator.source_identifier import SourceIdentifier
from utils.logger import get_logger

from .google_search_client import GoogleSearchClient
from .search_service import SearchService
from .tavily_client import TavilySearchClient

logger = get_logger(__name__)


def create_search_service_from_config(
    config: Config, identifier: SourceIdentifier | None = None
) -> SearchService:
    """
    Create the SearchService for the configured provider.

    Args:
        config: Loaded configuration (SEARCH_PROVIDER selects the provider)
        identifier: Used to tag each result with the source it would be fetched from

    Raises:
        ValueError: If the selected provider is missing its credentials
    """
    search = config.search
    if search.provider == SearchProvider.TAVILY:
        client = TavilySearchClient(api_key=search.tavily_api_key or "")
    else:
        client = GoogleSearchClient(
            engine_id=search.google_engine_id or "",
            api_key=search.google_api_key or "",
            timeout_s=config.upstream_timeout_s,
        )

    logger.info(f"Using {search.provider.value} for web search")
    return SearchService(client, search.provider.value, identifier)
