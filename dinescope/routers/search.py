"""
Search router — natural-language restaurant search.

Endpoints:
  POST /search — parse, filter, score and rank restaurants near a point

X-User-ID is optional; when present the search is logged for that user.
"""

from __future__ import annotations

import time
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from dinescope.database import get_db
from dinescope.schemas.search import SearchMeta, SearchRequest, SearchResponse
from dinescope.services import search_service

router = APIRouter(tags=["search"])


@router.post("/search", response_model=SearchResponse)
async def search(
    body: SearchRequest,
    x_user_id: Optional[str] = Header(default=None, alias="X-User-ID"),
    db: AsyncSession = Depends(get_db),
) -> SearchResponse:
    """
    Rank restaurants within `radius_miles` of the given point against the query.

    - Query text parsed into weighted feature targets (cached per text)
    - Explicit max_price / cuisines override what the parser inferred
    - Each result carries a feature breakdown, data-quality warnings and an explanation
    """
    started = time.perf_counter()

    result = await search_service.search(
        search_service.SearchParams(
            query=body.query,
            latitude=body.latitude,
            longitude=body.longitude,
            radius_miles=body.radius_miles,
            limit=body.limit,
            max_price=body.max_price,
            cuisines=body.cuisines,
            user_id=x_user_id or None,
        ),
        db,
    )

    return SearchResponse(
        results=result.restaurants,
        query_understood=result.parsed_query,
        meta=SearchMeta(
            total_results=result.total_count,
            query_id=result.query_id,
            processing_time_ms=int((time.perf_counter() - started) * 1000),
        ),
    )
