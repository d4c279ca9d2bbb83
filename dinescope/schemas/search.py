"""Request / response schemas for POST /search."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from dinescope.schemas.features import ParsedQuery
from dinescope.schemas.restaurant import ScoredRestaurant


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=3, max_length=500)
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    radius_miles: float = Field(10.0, ge=1.0, le=50.0)
    max_price: Optional[int] = Field(None, ge=1, le=4)
    cuisines: Optional[list[str]] = None
    limit: int = Field(10, ge=1, le=20)

    @field_validator("query")
    @classmethod
    def _strip_query(cls, value: str) -> str:
        stripped = value.strip()
        if len(stripped) < 3:
            raise ValueError("query must contain at least 3 non-blank characters")
        return stripped

    @field_validator("cuisines")
    @classmethod
    def _clean_cuisines(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        if value is None:
            return None
        cleaned = [c.strip() for c in value if c and c.strip()]
        return cleaned or None


class SearchMeta(BaseModel):
    total_results: int
    query_id: str
    processing_time_ms: int


class SearchResponse(BaseModel):
    results: list[ScoredRestaurant]
    query_understood: ParsedQuery
    meta: SearchMeta
