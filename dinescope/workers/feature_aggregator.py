"""
Feature aggregation worker — terminal pipeline stage.

Claims `aggregate_features` tasks, blends every stored extraction for the
restaurant with FeatureAggregator and overwrites its feature row.

Usage:
    python -m dinescope.workers.feature_aggregator
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from dinescope.models.task import TASK_AGGREGATE_FEATURES
from dinescope.services.feature_aggregator import FeatureAggregator
from dinescope.services.restaurant_store import fetch_extractions, replace_features
from dinescope.workers.queue_worker import QueueWorker, run_worker

logger = logging.getLogger(__name__)

_aggregator = FeatureAggregator()


async def aggregate_restaurant(db: AsyncSession, restaurant_id: str) -> None:
    """Recompute and persist one restaurant's feature vector."""
    extractions = await fetch_extractions(db, restaurant_id)
    if not extractions:
        logger.info("No feature extractions for restaurant %s, nothing to aggregate", restaurant_id)
        return

    vector = _aggregator.aggregate(extractions)
    await replace_features(db, restaurant_id, vector)

    logger.info(
        "Aggregated %d extractions for restaurant %s | confidence=%s model=%s",
        vector.review_count_analyzed, restaurant_id,
        vector.confidence_score, vector.model_version,
    )


def main() -> None:
    run_worker(QueueWorker(TASK_AGGREGATE_FEATURES, aggregate_restaurant))


if __name__ == "__main__":
    main()
