import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dinescope.models import Base, Restaurant, RestaurantFeature, Review, UserQuery
from dinescope.models.task import (
    STATUS_FAILED,
    STATUS_PENDING,
    TASK_AGGREGATE_FEATURES,
    TASK_EXTRACT_FEATURES,
)
from dinescope.services import restaurant_store as store
from dinescope.services import monitoring, task_queue
from dinescope.services.extraction import ExtractionResult
from dinescope.services.feature_aggregator import FeatureAggregator
from dinescope.utils.feature_data import FEATURE_NAMES


def _with_db(tmp_path, scenario):
    async def _main():
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        try:
            async with sessions() as db:
                await scenario(db)
        finally:
            await engine.dispose()

    asyncio.run(_main())


async def _seed(db):
    db.add_all([
        Restaurant(id="r1", name="Luna", latitude=40.71, longitude=-74.0,
                   price_level=2, google_rating=4.6, cuisine_tags=["Italian"]),
        Restaurant(id="r2", name="Sol", latitude=40.72, longitude=-74.0, price_level=None),
        Restaurant(id="r3", name="Closed", latitude=40.72, longitude=-74.0, is_active=False),
    ])
    db.add_all([
        Review(id="v1", restaurant_id="r1", rating=5, text="Romantic and quiet"),
        Review(id="v2", restaurant_id="r1", rating=3, text="Loud but cozy"),
        Review(id="v3", restaurant_id="r1", rating=4, text=None),
    ])
    await db.commit()


def _result(review_id, **features):
    values = {name: None for name in FEATURE_NAMES}
    values.update(features)
    return ExtractionResult(
        review_id=review_id, features=values, confidence=0.8,
        prompt_version="v1", model_used="rule-based",
    )


def test_extraction_roundtrip_and_feature_replacement(tmp_path):
    async def scenario(db):
        await _seed(db)

        pending = await store.fetch_unprocessed_reviews(db, "r1", limit=10)
        assert {r.id for r in pending} == {"v1", "v2"}
        assert await store.count_unprocessed_reviews(db, "r1") == 2

        await store.upsert_extraction(db, "r1", _result("v1", romantic=0.9))
        await store.mark_reviews_processed(db, ["v1"])
        await db.commit()
        assert await store.count_unprocessed_reviews(db, "r1") == 1

        # re-extraction overwrites instead of duplicating
        await store.upsert_extraction(db, "r1", _result("v1", romantic=0.7))
        await db.commit()
        extractions = await store.fetch_extractions(db, "r1")
        assert len(extractions) == 1
        assert extractions[0].features["romantic"] == 0.7
        assert extractions[0].review_rating == 5
        assert extractions[0].extraction_confidence == 0.8

        vector = FeatureAggregator().aggregate(extractions)
        await store.replace_features(db, "r1", vector)

        candidate = await store.fetch_restaurant(db, "r1")
        assert candidate.restaurant.cuisine_tags == ["Italian"]
        assert candidate.features.values["romantic"] == 0.7
        assert candidate.features.values["cozy"] is None
        assert candidate.features.review_count_analyzed == 1
        assert candidate.features.model_version == "rule-based:v1"

    _with_db(tmp_path, scenario)


def test_candidates_filter_inactive_and_price(tmp_path):
    async def scenario(db):
        await _seed(db)

        everything = await store.fetch_candidates(db)
        assert {c.restaurant.id for c in everything} == {"r1", "r2"}
        assert all(c.features is None for c in everything)

        cheap = await store.fetch_candidates(db, max_price=2)
        assert [c.restaurant.id for c in cheap] == ["r1"]
        assert await store.fetch_candidates(db, max_price=1) == []

        assert (await store.fetch_restaurant(db, "r3")).restaurant.name == "Closed"
        assert await store.fetch_restaurant(db, "nope") is None

    _with_db(tmp_path, scenario)


def test_record_query(tmp_path):
    async def scenario(db):
        await store.record_query(
            db,
            user_id="u1",
            query_text="romantic dinner",
            parsed_query={"intent": "date"},
            filters_applied={"limit": 10},
            latitude=40.7128001234,
            longitude=-74.0060005678,
            radius_miles=10.0,
            results_returned=[{"restaurant_id": "r1", "position": 1}],
        )
        row = (await db.execute(select(UserQuery))).scalar_one()
        assert row.user_id == "u1"
        assert row.latitude == 40.7128
        assert row.results_returned[0]["position"] == 1

    _with_db(tmp_path, scenario)


def test_task_queue_lifecycle(tmp_path):
    async def scenario(db):
        await _seed(db)

        first = await task_queue.enqueue_task(db, "r1", TASK_AGGREGATE_FEATURES, priority=40)
        duplicate = await task_queue.enqueue_task(db, "r1", TASK_AGGREGATE_FEATURES)
        assert duplicate.id == first.id

        claimed = await task_queue.claim_next_task(db, [TASK_AGGREGATE_FEATURES])
        assert claimed.id == first.id
        assert await task_queue.claim_next_task(db, [TASK_AGGREGATE_FEATURES]) is None

        await task_queue.fail_task(db, claimed.id, "boom")
        stats = await task_queue.queue_stats(db)
        assert stats[STATUS_PENDING] == 1
        # retry is delayed
        assert await task_queue.claim_next_task(db, [TASK_AGGREGATE_FEATURES]) is None

        await task_queue.fail_task(db, claimed.id, "boom")
        await task_queue.fail_task(db, claimed.id, "final")
        stats = await task_queue.queue_stats(db)
        assert stats[STATUS_FAILED] == 1
        assert stats["total"] == 1

        fresh = await task_queue.enqueue_task(db, "r1", TASK_AGGREGATE_FEATURES)
        assert fresh.id != first.id
        claimed = await task_queue.claim_next_task(db, [TASK_AGGREGATE_FEATURES])
        await task_queue.complete_task(db, claimed.id)
        assert (await task_queue.queue_stats(db))["completed"] == 1

    _with_db(tmp_path, scenario)


def test_monitoring_dashboard(tmp_path):
    now = datetime.now(timezone.utc)

    async def scenario(db):
        await _seed(db)
        db.add_all([
            RestaurantFeature(restaurant_id="r1", romantic=0.9, confidence_score=0.9,
                              review_count_analyzed=20, last_updated_at=now - timedelta(hours=1)),
            RestaurantFeature(restaurant_id="r2", confidence_score=0.3,
                              review_count_analyzed=4, last_updated_at=now - timedelta(days=60)),
        ])
        await db.commit()

        await task_queue.enqueue_task(db, "r1", TASK_EXTRACT_FEATURES)
        await task_queue.enqueue_task(db, "r2", TASK_AGGREGATE_FEATURES)
        claimed = await task_queue.claim_next_task(db, [TASK_AGGREGATE_FEATURES])
        claimed.started_at = now - timedelta(hours=2)
        await db.commit()

        dashboard = await monitoring.get_dashboard(db, now=now)

        queue = dashboard.queue
        assert queue.summary.pending == 1
        assert queue.summary.processing == 1
        assert queue.summary.total == 2
        assert queue.pending_by_type == {TASK_EXTRACT_FEATURES: 1, TASK_AGGREGATE_FEATURES: 0}
        assert queue.stuck_tasks == 1

        quality = dashboard.data_quality
        assert quality.total_restaurants == 3
        assert quality.restaurants_with_features == 2
        assert quality.restaurants_missing_features == 1
        assert quality.average_confidence == 0.6
        assert quality.average_review_count == 12.0
        assert quality.low_confidence_count == 1
        assert quality.stale_feature_count == 1
        assert quality.recent_aggregation_at > now - timedelta(days=1)
        assert [s.restaurant_id for s in quality.low_confidence_samples] == ["r2", "r1"]
        assert quality.low_confidence_samples[0].confidence == 0.3
        assert quality.low_confidence_samples[0].review_count == 4

    _with_db(tmp_path, scenario)


def test_monitoring_dashboard_on_empty_database(tmp_path):
    async def scenario(db):
        dashboard = await monitoring.get_dashboard(db)
        assert dashboard.queue.summary.total == 0
        assert dashboard.queue.stuck_tasks == 0
        assert dashboard.data_quality.total_restaurants == 0
        assert dashboard.data_quality.average_confidence == 0.0
        assert dashboard.data_quality.recent_aggregation_at is None
        assert dashboard.data_quality.low_confidence_samples == []

    _with_db(tmp_path, scenario)
