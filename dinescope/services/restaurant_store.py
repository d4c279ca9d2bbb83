"""
Restaurant store — the persistence boundary for the pipeline.

Everything crossing this module is converted into the in-memory schemas:
stored NUMERIC scores come back as floats, NULL feature rows as None.
The aggregation and scoring engines never see ORM objects.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dinescope.models import (
    FeatureExtractionRecord,
    Restaurant,
    RestaurantFeature,
    Review,
    UserQuery,
)
from dinescope.schemas.features import (
    AggregatedFeatureVector,
    FeatureExtraction,
    RestaurantFeatures,
)
from dinescope.schemas.restaurant import Candidate, RestaurantRecord
from dinescope.services.extraction import ExtractionResult, ReviewForExtraction
from dinescope.utils.feature_data import FEATURE_NAMES

logger = logging.getLogger(__name__)


# ── Row → schema conversion ────────────────────────────────────────────────────


def _to_record(row: Restaurant) -> RestaurantRecord:
    return RestaurantRecord(
        id=row.id,
        name=row.name,
        latitude=float(row.latitude),
        longitude=float(row.longitude),
        address=row.address,
        city=row.city,
        price_level=row.price_level,
        google_rating=float(row.google_rating) if row.google_rating is not None else None,
        google_review_count=row.google_review_count,
        cuisine_tags=list(row.cuisine_tags or []),
        photo_urls=list(row.photo_urls or []),
        phone=row.phone,
        website=row.website,
        hours=dict(row.hours) if isinstance(row.hours, dict) else None,
    )


def _to_features(row: Optional[RestaurantFeature]) -> Optional[RestaurantFeatures]:
    if row is None:
        return None
    return RestaurantFeatures(
        values={name: getattr(row, name) for name in FEATURE_NAMES},
        confidence_score=row.confidence_score,
        review_count_analyzed=row.review_count_analyzed,
        last_updated_at=row.last_updated_at,
        model_version=row.model_version,
    )


# ── Candidates ─────────────────────────────────────────────────────────────────


async def fetch_candidates(
    db: AsyncSession,
    max_price: Optional[int] = None,
) -> list[Candidate]:
    """
    Active restaurants joined to their feature row (None if never aggregated).
    Restaurants with no price level are excluded when max_price is given.
    """
    stmt = (
        select(Restaurant, RestaurantFeature)
        .outerjoin(RestaurantFeature, RestaurantFeature.restaurant_id == Restaurant.id)
        .where(Restaurant.is_active.is_(True))
    )
    if max_price is not None:
        stmt = stmt.where(Restaurant.price_level <= max_price)

    result = await db.execute(stmt)
    return [
        Candidate(restaurant=_to_record(restaurant), features=_to_features(features))
        for restaurant, features in result.all()
    ]


async def fetch_restaurant(db: AsyncSession, restaurant_id: str) -> Optional[Candidate]:
    """A single restaurant (active or not) with its feature row."""
    stmt = (
        select(Restaurant, RestaurantFeature)
        .outerjoin(RestaurantFeature, RestaurantFeature.restaurant_id == Restaurant.id)
        .where(Restaurant.id == restaurant_id)
    )
    row = (await db.execute(stmt)).first()
    if row is None:
        return None
    restaurant, features = row
    return Candidate(restaurant=_to_record(restaurant), features=_to_features(features))


# ── Aggregation I/O ────────────────────────────────────────────────────────────


async def fetch_extractions(db: AsyncSession, restaurant_id: str) -> list[FeatureExtraction]:
    """All extractions for a restaurant, joined with review rating and publish date."""
    stmt = (
        select(FeatureExtractionRecord, Review.rating, Review.published_at)
        .join(Review, Review.id == FeatureExtractionRecord.review_id)
        .where(FeatureExtractionRecord.restaurant_id == restaurant_id)
    )
    result = await db.execute(stmt)
    return [
        FeatureExtraction(
            review_id=record.review_id,
            restaurant_id=record.restaurant_id,
            features=dict(record.features or {}),
            extraction_confidence=record.extraction_confidence,
            review_rating=rating,
            model_used=record.model_used,
            prompt_version=record.prompt_version,
            extracted_at=record.extracted_at,
            updated_at=record.updated_at,
            review_published_at=published_at,
        )
        for record, rating, published_at in result.all()
    ]


async def replace_features(
    db: AsyncSession,
    restaurant_id: str,
    vector: AggregatedFeatureVector,
) -> None:
    """Overwrite the restaurant's feature row with `vector` — no partial merge."""
    row = await db.get(RestaurantFeature, restaurant_id)
    if row is None:
        row = RestaurantFeature(restaurant_id=restaurant_id)
        db.add(row)

    for name in FEATURE_NAMES:
        setattr(row, name, vector.values.get(name))
    row.confidence_score = vector.confidence_score
    row.review_count_analyzed = vector.review_count_analyzed
    row.model_version = vector.model_version
    row.last_updated_at = datetime.now(timezone.utc)

    await db.commit()


# ── Extraction I/O ─────────────────────────────────────────────────────────────


async def fetch_unprocessed_reviews(
    db: AsyncSession,
    restaurant_id: str,
    limit: int,
) -> list[ReviewForExtraction]:
    """Oldest-first reviews with text that have not been extracted yet."""
    stmt = (
        select(Review)
        .where(
            Review.restaurant_id == restaurant_id,
            Review.is_processed.is_(False),
            Review.text.is_not(None),
        )
        .order_by(Review.created_at.asc())
        .limit(limit)
    )
    rows = (await db.execute(stmt)).scalars().all()
    return [ReviewForExtraction(id=r.id, text=r.text, rating=r.rating) for r in rows]


async def count_unprocessed_reviews(db: AsyncSession, restaurant_id: str) -> int:
    stmt = select(func.count()).select_from(Review).where(
        Review.restaurant_id == restaurant_id,
        Review.is_processed.is_(False),
        Review.text.is_not(None),
    )
    return int((await db.execute(stmt)).scalar_one())


async def upsert_extraction(
    db: AsyncSession,
    restaurant_id: str,
    result: ExtractionResult,
    extracted_at: Optional[datetime] = None,
) -> None:
    """Insert or overwrite the extraction for result.review_id. Caller commits."""
    stmt = select(FeatureExtractionRecord).where(
        FeatureExtractionRecord.review_id == result.review_id
    )
    record = (await db.execute(stmt)).scalar_one_or_none()
    if record is None:
        record = FeatureExtractionRecord(review_id=result.review_id, restaurant_id=restaurant_id)
        db.add(record)

    record.features = dict(result.features)
    record.extraction_confidence = round(result.confidence, 2)
    record.model_used = result.model_used
    record.prompt_version = result.prompt_version
    record.extracted_at = extracted_at or datetime.now(timezone.utc)


async def mark_reviews_processed(db: AsyncSession, review_ids: list[str]) -> None:
    """Flag reviews as extracted. Caller commits."""
    if not review_ids:
        return
    await db.execute(
        update(Review).where(Review.id.in_(review_ids)).values(is_processed=True)
    )


# ── Query log ──────────────────────────────────────────────────────────────────


async def record_query(
    db: AsyncSession,
    *,
    user_id: str,
    query_text: str,
    parsed_query: dict[str, Any],
    filters_applied: dict[str, Any],
    latitude: float,
    longitude: float,
    radius_miles: float,
    results_returned: list[dict[str, Any]],
) -> None:
    """Persist one search for analytics."""
    db.add(
        UserQuery(
            user_id=user_id,
            query_text=query_text,
            parsed_query=parsed_query,
            filters_applied=filters_applied,
            latitude=round(latitude, 6),
            longitude=round(longitude, 6),
            radius_miles=round(radius_miles, 2),
            results_returned=results_returned,
        )
    )
    await db.commit()
