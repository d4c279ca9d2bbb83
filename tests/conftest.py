import os
from datetime import datetime, timedelta, timezone

import pytest

# Settings are read once at import time, so pin them before any dinescope import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("EXTRACTION_PROVIDER", "rule_based")
os.environ.setdefault("QUERY_PARSER_PROVIDER", "rule_based")
os.environ.setdefault("GOOGLE_API_KEY", "")

from dinescope.schemas.features import RestaurantFeatures  # noqa: E402
from dinescope.schemas.restaurant import Candidate, RestaurantRecord  # noqa: E402

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_record(id="r1", name="Luna", lat=40.7128, lng=-74.0060, rating=4.5, **kwargs):
    return RestaurantRecord(
        id=id, name=name, latitude=lat, longitude=lng, google_rating=rating, **kwargs
    )


def make_features(values=None, confidence=0.9, reviews=20, age_days=1, model_version="m:v1"):
    return RestaurantFeatures(
        values=values or {},
        confidence_score=confidence,
        review_count_analyzed=reviews,
        last_updated_at=NOW - timedelta(days=age_days),
        model_version=model_version,
    )


def make_candidate(id="r1", name="Luna", features=None, **kwargs):
    return Candidate(restaurant=make_record(id=id, name=name, **kwargs), features=features)


@pytest.fixture
def now():
    return NOW
