"""Web search tools for ResearchRelay."""

from .contracts import SearchParams, SearchResponse, SearchResult
from .factory import create_search_service_from_config
from .search_service import SearchService
from .tool_schemas import TOOLS

__all__ = [
    "SearchParams",
    "SearchResponse",
    "SearchResult",
    "SearchService",
    "TOOLS",
    "create_search_service_from_config",
]
