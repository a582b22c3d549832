"""Search endpoint (query_search tool)."""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Request, status

from server.dependencies import get_api_key, get_search_service
from server.schemas.requests import SearchRequest
from server.schemas.responses import SearchResponseDTO
from tools.web.contracts import SearchParams
from tools.web.search_service import SearchService
from utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/v1", tags=["Search"])


@router.post("/search", response_model=SearchResponseDTO)
async def search(
    request: SearchRequest,
    http_request: Request,
    api_key: str = Depends(get_api_key),
    search_service: SearchService = Depends(get_search_service),
):
    """Run a web search and return ranked results."""
    request_id = getattr(http_request.state, "request_id", "unknown")
    params = SearchParams(
        query=request.query,
        exact_terms=request.exact_terms,
        exclude_terms=request.exclude_terms,
        start=request.start,
    )

    response = await asyncio.to_thread(search_service.search, params)
    if not response.ok:
        logger.warning(
            "Search request failed upstream",
            extra={"extra_fields": {"request_id": request_id, "provider": response.provider}},
        )
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=response.error)

    return SearchResponseDTO.from_search_response(response, request_id)
