"""
Search service — natural-language restaurant search.

Pipeline:
  1. Parse the query text → ParsedQuery (cached per normalised text)
  2. Fetch active candidates, filtered by max price (request or parsed)
  3. Filter by cuisine (request or parsed), case-insensitive
  4. Score + rank with Scorer (pure Python, no LLM)
  5. Truncate to `limit`
  6. Fire-and-forget query log (own session, never raises)

Caching:
  Key:  sha256(lowercased, whitespace-collapsed query)[:16]
  TTL:  settings.query_cache_ttl_seconds
  Size: 10,000 entries
  Fallback parses (model unavailable) are not cached.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional

from cachetools import TTLCache
from sqlalchemy.ext.asyncio import AsyncSession

from dinescope.config import settings
from dinescope.database import AsyncSessionLocal
from dinescope.schemas.features import ParsedQuery
from dinescope.schemas.restaurant import Candidate, GeoPoint, ScoredRestaurant
from dinescope.services.query_parser import get_query_parser
from dinescope.services.restaurant_store import fetch_candidates, record_query
from dinescope.services.scorer import Scorer

logger = logging.getLogger(__name__)

# ── Module-level singletons ────────────────────────────────────────────────────

_scorer = Scorer()
_query_parser = get_query_parser()

# Cache: normalised query text → ParsedQuery JSON string
_cache_parsed: TTLCache = TTLCache(maxsize=10_000, ttl=settings.query_cache_ttl_seconds)

# Strong references so pending log tasks are not garbage collected mid-flight
_background_tasks: set[asyncio.Task] = set()


@dataclass
class SearchParams:
    query: str
    latitude: float
    longitude: float
    radius_miles: float
    limit: int = 10
    max_price: Optional[int] = None
    cuisines: Optional[list[str]] = None
    user_id: Optional[str] = None


@dataclass
class SearchResult:
    query_id: str
    restaurants: list[ScoredRestaurant]
    parsed_query: ParsedQuery
    total_count: int = 0
    filters: dict = field(default_factory=dict)


def _parse_cache_key(query: str) -> str:
    normalised = " ".join(query.lower().split())
    return hashlib.sha256(normalised.encode()).hexdigest()[:16]


def clear_query_cache() -> None:
    _cache_parsed.clear()


async def parse_query(query: str) -> ParsedQuery:
    """Parse with the configured parser, memoised per normalised query text."""
    key = _parse_cache_key(query)
    cached = _cache_parsed.get(key)
    if cached is not None:
        logger.debug("Parsed-query cache HIT (key=%s)", key)
        return ParsedQuery.model_validate_json(cached)

    parsed = await _query_parser.parse(query)
    if parsed.fallback:
        # degraded parse; let the next request try the model again
        logger.debug("Skipping cache for fallback parse (key=%s)", key)
        return parsed
    _cache_parsed[key] = parsed.model_dump_json()
    return parsed


def _matches_cuisines(restaurant_cuisines: list[str], desired: list[str]) -> bool:
    if not restaurant_cuisines:
        return False
    have = {c.lower() for c in restaurant_cuisines}
    return any(c.lower() in have for c in desired)


# ── Main pipeline ──────────────────────────────────────────────────────────────


async def search(params: SearchParams, db: AsyncSession) -> SearchResult:
    """Run a search and return the top `limit` results plus the total match count."""
    query_id = str(uuid.uuid4())

    parsed = await parse_query(params.query)
    max_price = params.max_price if params.max_price is not None else parsed.max_price
    cuisines = params.cuisines or parsed.cuisines or []

    candidates: list[Candidate] = await fetch_candidates(db, max_price=max_price)
    if cuisines:
        candidates = [
            c for c in candidates if _matches_cuisines(c.restaurant.cuisine_tags, cuisines)
        ]

    scored = _scorer.score_restaurants(
        candidates,
        parsed,
        GeoPoint(lat=params.latitude, lng=params.longitude),
        params.radius_miles,
    )
    top = scored[: params.limit]

    filters = {
        "max_price": max_price,
        "cuisines": cuisines or None,
        "limit": params.limit,
    }

    if params.user_id:
        task = asyncio.create_task(_log_query(params, parsed, filters, top))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

    logger.info(
        "Search %s: %d candidates, %d in range, returning %d",
        query_id, len(candidates), len(scored), len(top),
    )

    return SearchResult(
        query_id=query_id,
        restaurants=top,
        parsed_query=parsed,
        total_count=len(scored),
        filters=filters,
    )


async def _log_query(
    params: SearchParams,
    parsed: ParsedQuery,
    filters: dict,
    results: list[ScoredRestaurant],
) -> None:
    """
    Fire-and-forget: persist the search for analytics.
    Opens its own session, never the request session.
    Never raises.
    """
    try:
        async with AsyncSessionLocal() as db:
            await record_query(
                db,
                user_id=params.user_id,
                query_text=params.query,
                parsed_query=parsed.model_dump(mode="json"),
                filters_applied=filters,
                latitude=params.latitude,
                longitude=params.longitude,
                radius_miles=params.radius_miles,
                results_returned=[
                    {
                        "restaurant_id": r.id,
                        "name": r.name,
                        "score": r.match_score,
                        "position": position,
                        "distance_miles": r.distance_miles,
                    }
                    for position, r in enumerate(results, start=1)
                ],
            )
    except Exception as exc:
        logger.warning("Failed to log query for user=%s: %s", params.user_id, exc)
