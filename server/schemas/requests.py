"""Pydantic request models for FastAPI endpoints."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from models.document import SourceKind


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1)
    exact_terms: Optional[str] = None
    exclude_terms: Optional[str] = None
    start: Optional[int] = Field(None, ge=1, le=100)

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query must not be blank")
        return value


class FetchRequest(BaseModel):
    url: str = Field(..., min_length=1)
    # Advisory only; routing is decided by the URL
    source_hint: Optional[SourceKind] = None
    search_title: Optional[str] = None
