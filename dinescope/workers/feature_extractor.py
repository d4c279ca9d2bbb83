"""
Feature extraction worker.

Claims `extract_features` tasks, scores a batch of unprocessed reviews with
the configured extraction provider, stores each successful extraction, and
queues aggregation. Asks the queue worker to re-queue the task while
reviews remain.

Reviews the provider rejects outright (ExtractionError, e.g. blank text) are
marked processed without an extraction so they never hold the queue open.
A batch where every review failed for any other reason raises, which hands
the task back to the queue's retry schedule.

Usage:
    python -m dinescope.workers.feature_extractor
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dinescope.config import settings
from dinescope.models.task import TASK_AGGREGATE_FEATURES, TASK_EXTRACT_FEATURES
from dinescope.services.extraction import (
    ExtractionError,
    ExtractionProvider,
    extract_batch,
    get_extraction_provider,
)
from dinescope.services.restaurant_store import (
    count_unprocessed_reviews,
    fetch_unprocessed_reviews,
    mark_reviews_processed,
    upsert_extraction,
)
from dinescope.services.task_queue import enqueue_task
from dinescope.workers.queue_worker import QueueWorker, run_worker

logger = logging.getLogger(__name__)

PIPELINE_PRIORITY = 40
MAX_BATCH_SIZE = 100


@dataclass(frozen=True)
class ExtractionRun:
    stored: int = 0
    skipped: int = 0
    failed: int = 0
    remaining: int = 0

    @property
    def requeue(self) -> bool:
        """More reviews are waiting and this batch moved the restaurant forward."""
        return self.remaining > 0 and (self.stored + self.skipped) > 0


async def extract_restaurant(
    db: AsyncSession,
    restaurant_id: str,
    provider: Optional[ExtractionProvider] = None,
    batch_size: Optional[int] = None,
) -> ExtractionRun:
    """Extract one batch of reviews for a restaurant."""
    provider = provider or get_extraction_provider()
    batch_size = min(MAX_BATCH_SIZE, batch_size or settings.feature_extractor_batch_size)

    reviews = await fetch_unprocessed_reviews(db, restaurant_id, batch_size)
    if not reviews:
        logger.info("No unprocessed reviews for restaurant %s", restaurant_id)
        return ExtractionRun()

    logger.info(
        "Extracting %d reviews for restaurant %s with %s",
        len(reviews), restaurant_id, provider.name,
    )
    outcomes = await extract_batch(provider, reviews)

    stored: list[str] = []
    skipped: list[str] = []
    for outcome in outcomes:
        if outcome.result is not None:
            await upsert_extraction(db, restaurant_id, outcome.result)
            stored.append(outcome.result.review_id)
        elif isinstance(outcome.error, ExtractionError):
            skipped.append(outcome.review.id)

    if stored or skipped:
        await mark_reviews_processed(db, stored + skipped)
        await db.commit()
    if stored:
        await enqueue_task(db, restaurant_id, TASK_AGGREGATE_FEATURES, PIPELINE_PRIORITY)

    failed = len(outcomes) - len(stored) - len(skipped)
    logger.info(
        "Stored %d extractions for restaurant %s (%d skipped, %d failed)",
        len(stored), restaurant_id, len(skipped), failed,
    )
    if failed == len(outcomes):
        raise ExtractionError(f"All {failed} extractions failed for restaurant {restaurant_id}")

    remaining = await count_unprocessed_reviews(db, restaurant_id)
    run = ExtractionRun(stored=len(stored), skipped=len(skipped), failed=failed, remaining=remaining)
    if run.requeue:
        logger.info("%d reviews remaining for restaurant %s", remaining, restaurant_id)
    return run


async def _handle(db: AsyncSession, restaurant_id: str) -> bool:
    run = await extract_restaurant(db, restaurant_id)
    return run.requeue


def main() -> None:
    run_worker(QueueWorker(TASK_EXTRACT_FEATURES, _handle))


if __name__ == "__main__":
    main()
