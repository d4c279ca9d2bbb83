"""
FeatureAggregator — pure weighted aggregation.
No LLM calls. No DB calls. Blends N per-review extractions into one vector.

Per-extraction weight (applied per feature):
  recency     max(0.35, exp(-months_old / 6))      30-day months
  confidence  extraction confidence                 default 0.6
  rating      max(0.3, review_rating / 5)           default 0.6

Overall confidence:
  0.3 + 0.4 * avg_confidence + 0.3 * coverage, clamped to [0.3, 0.99]
  coverage saturates once every feature averages COVERAGE_SATURATION samples.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Optional

from dinescope.schemas.features import AggregatedFeatureVector, FeatureExtraction
from dinescope.utils.feature_data import FEATURE_NAMES, unit_score

_SECONDS_PER_MONTH = 60 * 60 * 24 * 30
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

RECENCY_HALF_LIFE_MONTHS = 6.0
RECENCY_FLOOR = 0.35
DEFAULT_CONFIDENCE = 0.6
RATING_FLOOR = 0.3
DEFAULT_RATING_WEIGHT = 0.6

# Contributions per feature at which coverage credit is full. Hand-picked.
COVERAGE_SATURATION = 3
NO_SIGNAL_CONFIDENCE = 0.4
MIN_CONFIDENCE = 0.3
MAX_CONFIDENCE = 0.99


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class FeatureAggregator:
    """
    Pure Python aggregator. Receives pre-fetched extractions and returns an
    AggregatedFeatureVector. Calling it twice with the same input (and the
    same `now`) yields identical output.
    """

    def aggregate(
        self,
        extractions: list[FeatureExtraction],
        now: Optional[datetime] = None,
    ) -> AggregatedFeatureVector:
        """Blend every extraction into one vector with an overall confidence."""
        if not extractions:
            return AggregatedFeatureVector()

        now = _as_utc(now) if now is not None else datetime.now(timezone.utc)

        # Weights depend only on the extraction, not on the feature
        weighted = [(e, self._weight(e, now), self._confidence(e)) for e in extractions]

        values: dict[str, Optional[float]] = {}
        contributions = 0
        confidence_samples: list[float] = []

        for name in FEATURE_NAMES:
            weighted_sum = 0.0
            total_weight = 0.0

            for extraction, weight, confidence in weighted:
                value = unit_score(extraction.features.get(name))
                if value is None or weight <= 0:
                    continue
                weighted_sum += value * weight
                total_weight += weight
                contributions += 1
                confidence_samples.append(confidence)

            values[name] = round(weighted_sum / total_weight, 2) if total_weight > 0 else None

        return AggregatedFeatureVector(
            values=values,
            confidence_score=self._overall_confidence(contributions, confidence_samples),
            review_count_analyzed=len(extractions),
            model_version=self._model_version(extractions),
        )

    # ── Weight components ──────────────────────────────────────────────────────

    def _weight(self, extraction: FeatureExtraction, now: datetime) -> float:
        return (
            self._recency_weight(extraction, now)
            * self._confidence(extraction)
            * self._rating_weight(extraction)
        )

    def _recency_weight(self, extraction: FeatureExtraction, now: datetime) -> float:
        timestamp = (
            extraction.extracted_at
            or extraction.updated_at
            or extraction.review_published_at
            or now
        )
        elapsed = max(0.0, (now - _as_utc(timestamp)).total_seconds())
        months_old = elapsed / _SECONDS_PER_MONTH
        return max(RECENCY_FLOOR, math.exp(-months_old / RECENCY_HALF_LIFE_MONTHS))

    def _confidence(self, extraction: FeatureExtraction) -> float:
        if extraction.extraction_confidence is None:
            return DEFAULT_CONFIDENCE
        return extraction.extraction_confidence

    def _rating_weight(self, extraction: FeatureExtraction) -> float:
        if extraction.review_rating is None:
            return DEFAULT_RATING_WEIGHT
        return max(RATING_FLOOR, extraction.review_rating / 5)

    # ── Summary fields ─────────────────────────────────────────────────────────

    def _overall_confidence(self, contributions: int, samples: list[float]) -> float:
        """No samples at all means extractions existed but carried no usable signal."""
        if not samples:
            return NO_SIGNAL_CONFIDENCE

        average = sum(samples) / len(samples)
        coverage = min(1.0, contributions / (len(FEATURE_NAMES) * COVERAGE_SATURATION))
        score = 0.3 + 0.4 * average + 0.3 * coverage
        return round(min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, score)), 2)

    def _model_version(self, extractions: list[FeatureExtraction]) -> Optional[str]:
        """model:prompt of the most recently extracted record; first wins on ties."""
        latest: Optional[FeatureExtraction] = None
        latest_at = _EPOCH
        for extraction in extractions:
            at = _as_utc(extraction.extracted_at or extraction.updated_at or _EPOCH)
            if latest is None or at > latest_at:
                latest, latest_at = extraction, at
        if latest is None:
            return None
        return f"{latest.model_used}:{latest.prompt_version}"
