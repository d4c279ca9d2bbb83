"""
Monitoring service — queue health and feature data quality in one snapshot.

Queue section:
  summary          task counts per status (task_queue.queue_stats)
  pending_by_type  pending tasks per task type
  stuck_tasks      tasks processing for longer than task_queue.STUCK_AFTER

Data-quality section uses the scorer's thresholds so the dashboard flags the
same restaurants search results carry warnings for:
  low confidence   confidence_score < LOW_CONFIDENCE_THRESHOLD
  stale            last_updated_at older than STALE_AFTER
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dinescope.models import Restaurant, RestaurantFeature
from dinescope.schemas.monitoring import (
    DataQualitySection,
    LowConfidenceSample,
    MonitoringDashboard,
    QueueSection,
    QueueSummary,
)
from dinescope.services.scorer import LOW_CONFIDENCE_THRESHOLD, STALE_AFTER
from dinescope.services.task_queue import pending_by_type, queue_stats, stuck_tasks
from dinescope.utils.feature_data import finite_float

logger = logging.getLogger(__name__)

LOW_CONFIDENCE_SAMPLE_SIZE = 5


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands timestamps back naive; they are stored as UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _rounded(value: Any, digits: int = 2) -> float:
    number = finite_float(value)
    return round(number, digits) if number is not None else 0.0


async def _queue_section(db: AsyncSession, now: datetime) -> QueueSection:
    summary = await queue_stats(db)
    return QueueSection(
        summary=QueueSummary(**summary),
        pending_by_type=await pending_by_type(db),
        stuck_tasks=len(await stuck_tasks(db, now=now)),
    )


async def _data_quality_section(db: AsyncSession, now: datetime) -> DataQualitySection:
    total, with_features = (
        await db.execute(
            select(func.count(Restaurant.id), func.count(RestaurantFeature.restaurant_id))
            .select_from(Restaurant)
            .outerjoin(RestaurantFeature, RestaurantFeature.restaurant_id == Restaurant.id)
        )
    ).one()

    avg_confidence, avg_reviews, last_aggregated = (
        await db.execute(
            select(
                func.avg(RestaurantFeature.confidence_score),
                func.avg(RestaurantFeature.review_count_analyzed),
                func.max(RestaurantFeature.last_updated_at),
            )
        )
    ).one()

    low_confidence = (
        await db.execute(
            select(func.count())
            .select_from(RestaurantFeature)
            .where(
                RestaurantFeature.confidence_score.is_not(None),
                RestaurantFeature.confidence_score < LOW_CONFIDENCE_THRESHOLD,
            )
        )
    ).scalar_one()

    stale = (
        await db.execute(
            select(func.count())
            .select_from(RestaurantFeature)
            .where(RestaurantFeature.last_updated_at < now - STALE_AFTER)
        )
    ).scalar_one()

    sample_rows = (
        await db.execute(
            select(
                Restaurant.id,
                Restaurant.name,
                RestaurantFeature.confidence_score,
                RestaurantFeature.review_count_analyzed,
                RestaurantFeature.last_updated_at,
            )
            .join(RestaurantFeature, RestaurantFeature.restaurant_id == Restaurant.id)
            .where(RestaurantFeature.confidence_score.is_not(None))
            .order_by(RestaurantFeature.confidence_score.asc())
            .limit(LOW_CONFIDENCE_SAMPLE_SIZE)
        )
    ).all()

    samples = []
    for restaurant_id, name, confidence, review_count, updated_at in sample_rows:
        confidence = finite_float(confidence)
        samples.append(LowConfidenceSample(
            restaurant_id=restaurant_id,
            name=name,
            confidence=round(min(1.0, max(0.0, confidence)), 2) if confidence is not None else None,
            review_count=review_count or 0,
            last_updated_at=_utc(updated_at),
        ))

    total, with_features = int(total or 0), int(with_features or 0)
    return DataQualitySection(
        total_restaurants=total,
        restaurants_with_features=with_features,
        restaurants_missing_features=max(total - with_features, 0),
        average_confidence=_rounded(avg_confidence),
        average_review_count=_rounded(avg_reviews, 1),
        low_confidence_count=int(low_confidence or 0),
        stale_feature_count=int(stale or 0),
        recent_aggregation_at=_utc(last_aggregated),
        low_confidence_samples=samples,
    )


async def get_dashboard(
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> MonitoringDashboard:
    """Build the full dashboard. Read-only."""
    now = now or datetime.now(timezone.utc)
    queue = await _queue_section(db, now)
    data_quality = await _data_quality_section(db, now)

    logger.debug(
        "Dashboard built | pending=%d stuck=%d restaurants=%d missing_features=%d",
        queue.summary.pending, queue.stuck_tasks,
        data_quality.total_restaurants, data_quality.restaurants_missing_features,
    )
    return MonitoringDashboard(generated_at=now, queue=queue, data_quality=data_quality)
