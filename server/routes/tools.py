"""Tool schema endpoint."""

from fastapi import APIRouter, Depends

from server.dependencies import get_api_key
from server.schemas.responses import ToolsResponseDTO
from tools.web.tool_schemas import TOOLS

router = APIRouter(prefix="/v1", tags=["Tools"])


@router.get("/tools", response_model=ToolsResponseDTO)
async def list_tools(api_key: str = Depends(get_api_key)):
    """Function-calling schemas for query_search and fetch_page."""
    return ToolsResponseDTO(tools=TOOLS)
