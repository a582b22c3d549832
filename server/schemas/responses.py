"""Pydantic response models (DTOs) for FastAPI endpoints."""

from pydantic import BaseModel, Field


class SearchResultDTO(BaseModel):
    title: str
    url: str
    snippet: str
    source_kind: str


class SearchResponseDTO(BaseModel):
    request_id: str
    query: str
    provider: str
    results: list[SearchResultDTO]

    @classmethod
    def from_search_response(cls, sr, request_id: str):
        """Convert SearchResponse to DTO."""
        return cls(
            request_id=request_id,
            query=sr.query,
            provider=sr.provider,
            results=[SearchResultDTO(**r.to_dict()) for r in sr.results],
        )


class DocumentDTO(BaseModel):
    source_kind: str
    canonical_url: str
    title: str
    body_text: str
    retrieved_at: str


class FailureDTO(BaseModel):
    reason: str
    message: str
    source_kind: str
    retry_after: float | None = None


class AttemptDTO(BaseModel):
    source_kind: str
    reason: str
    latency_ms: int


class FetchResponseDTO(BaseModel):
    request_id: str
    url: str
    ok: bool
    classified_as: str
    document: DocumentDTO | None = None
    failure: FailureDTO | None = None
    used_fallback: bool = False
    attempts: list[AttemptDTO] = Field(default_factory=list)

    @classmethod
    def from_retrieval_result(cls, result, request_id: str):
        """Convert RetrievalResult to DTO."""
        data = result.to_dict()
        return cls(
            request_id=request_id,
            url=data["url"],
            ok=data["ok"],
            classified_as=data["classified_as"],
            document=DocumentDTO(**data["document"]) if data["document"] else None,
            failure=FailureDTO(**data["failure"]) if data["failure"] else None,
            used_fallback=result.used_fallback,
            attempts=[AttemptDTO(**a) for a in data["attempts"]],
        )


class ToolsResponseDTO(BaseModel):
    tools: list[dict]


class HealthResponseDTO(BaseModel):
    status: str
    timestamp: str
    version: str = "1.0.0"
    sources: dict[str, bool] = Field(default_factory=dict)
