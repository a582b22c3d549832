"""Fetch endpoint (fetch_page tool)."""

import asyncio

from fastapi import APIRouter, Depends, Request

from models.document import RetrievalRequest
from orchestrator.retrieval import RetrievalOrchestrator
from server.dependencies import get_api_key, get_orchestrator
from server.schemas.requests import FetchRequest
from server.schemas.responses import FetchResponseDTO

router = APIRouter(prefix="/v1", tags=["Fetch"])


@router.post("/fetch", response_model=FetchResponseDTO)
async def fetch(
    request: FetchRequest,
    http_request: Request,
    api_key: str = Depends(get_api_key),
    orchestrator: RetrievalOrchestrator = Depends(get_orchestrator),
):
    """
    Fetch readable content for a URL.

    Upstream faults are part of the response body (ok=false), never a 5xx.
    """
    request_id = getattr(http_request.state, "request_id", "unknown")
    retrieval_request = RetrievalRequest(
        url=request.url, source_hint=request.source_hint, search_title=request.search_title
    )
    result = await asyncio.to_thread(orchestrator.retrieve, retrieval_request)
    return FetchResponseDTO.from_retrieval_result(result, request_id)
