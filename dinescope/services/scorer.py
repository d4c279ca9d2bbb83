"""
Scorer — pure algorithmic ranker.
No LLM calls. No DB calls. Ranks candidates against a parsed query.

Final score (0–1):
  base       = 0.7 * feature_score + 0.2 * rating + 0.1 * proximity
  multiplier = 0.65 + 0.35 * confidence
  score      = clamp(base * multiplier - sum(warning penalties), 0, 1)

A restaurant with no feature vector always scores 0.
Malformed feature data never raises; it becomes a warning and a penalty.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from dinescope.schemas.features import ParsedFeature, ParsedQuery, RestaurantFeatures
from dinescope.schemas.restaurant import (
    Candidate,
    DataQuality,
    DataQualityWarning,
    FeatureMatch,
    GeoPoint,
    RestaurantRecord,
    ScoredRestaurant,
)
from dinescope.utils.feature_data import FEATURE_LABELS, unit_score
from dinescope.utils.geo import haversine_distance_miles

W = DataQualityWarning

FEATURE_WEIGHT = 0.7
RATING_WEIGHT = 0.2
PROXIMITY_WEIGHT = 0.1

NEUTRAL_RATING = 0.6
DEFAULT_CONFIDENCE = 0.6
CONFIDENCE_BASE = 0.65
CONFIDENCE_SPAN = 0.35

STRONG_MATCH = 0.7
REQUIRED_MISS_FACTOR = 0.5

LOW_CONFIDENCE_THRESHOLD = 0.5
MIN_REVIEW_COUNT = 5
STALE_AFTER = timedelta(days=30)

# Exhaustive over DataQualityWarning. MISSING_FEATURES is listed for
# completeness only: a missing vector floors the score at 0 before penalties.
WARNING_PENALTIES: dict[DataQualityWarning, float] = {
    W.MISSING_FEATURES: 0.15,
    W.STALE_FEATURES: 0.07,
    W.LOW_CONFIDENCE: 0.05,
    W.INSUFFICIENT_REVIEWS: 0.05,
    W.INVALID_FEATURE_VALUE: 0.03,
}

_CAVEAT_WARNINGS = {W.LOW_CONFIDENCE, W.INSUFFICIENT_REVIEWS, W.STALE_FEATURES}


def _ordered(warnings: set[DataQualityWarning]) -> list[DataQualityWarning]:
    return [w for w in DataQualityWarning if w in warnings]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Scorer:
    """
    Pure Python scorer. Receives pre-fetched candidates and returns ranked
    ScoredRestaurants. Runs on every active restaurant per search.
    """

    def score_restaurants(
        self,
        candidates: list[Candidate],
        parsed_query: ParsedQuery,
        user_location: GeoPoint,
        radius_miles: float,
        now: Optional[datetime] = None,
    ) -> list[ScoredRestaurant]:
        """
        Score every candidate, drop those beyond radius_miles, and sort by
        match_score descending. Equal scores keep their input order.
        radius_miles must be > 0.
        """
        now = _as_utc(now) if now is not None else datetime.now(timezone.utc)

        scored = [
            self.score(c.restaurant, c.features, parsed_query, user_location, radius_miles, now)
            for c in candidates
        ]
        in_range = [s for s in scored if s.distance_miles <= radius_miles]
        in_range.sort(key=lambda s: s.match_score, reverse=True)
        return in_range

    def score(
        self,
        restaurant: RestaurantRecord,
        features: Optional[RestaurantFeatures],
        parsed_query: ParsedQuery,
        user_location: GeoPoint,
        radius_miles: float,
        now: datetime,
    ) -> ScoredRestaurant:
        """Score a single restaurant against the query."""
        distance = haversine_distance_miles(
            restaurant.latitude, restaurant.longitude,
            user_location.lat, user_location.lng,
        )

        quality = self.evaluate_data_quality(features, now)
        warnings = set(quality.warnings)

        feature_score, feature_matches, invalid = self._feature_score(
            features, parsed_query.features
        )
        if invalid:
            warnings.add(W.INVALID_FEATURE_VALUE)
        quality = quality.model_copy(update={"warnings": _ordered(warnings)})

        match_score = self._final_score(
            feature_score,
            restaurant.google_rating,
            distance,
            radius_miles,
            quality.confidence,
            warnings,
        )

        return ScoredRestaurant(
            id=restaurant.id,
            name=restaurant.name,
            latitude=restaurant.latitude,
            longitude=restaurant.longitude,
            price_level=restaurant.price_level,
            google_rating=restaurant.google_rating,
            cuisine_tags=list(restaurant.cuisine_tags),
            photo_urls=list(restaurant.photo_urls),
            distance_miles=distance,
            feature_score=feature_score,
            match_score=match_score,
            feature_matches=feature_matches,
            data_quality=quality,
            explanation=self._explanation(restaurant.name, feature_matches, quality),
        )

    # ── Data quality ───────────────────────────────────────────────────────────

    def evaluate_data_quality(
        self,
        features: Optional[RestaurantFeatures],
        now: Optional[datetime] = None,
    ) -> DataQuality:
        """Query-independent trust assessment of a restaurant's feature vector."""
        if features is None:
            return DataQuality(
                confidence=None,
                review_count=0,
                warnings=[W.MISSING_FEATURES],
            )

        now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
        warnings: set[DataQualityWarning] = set()

        confidence: Optional[float] = None
        if features.confidence_score is not None:
            confidence = min(1.0, max(0.0, features.confidence_score))
        if confidence is None or confidence < LOW_CONFIDENCE_THRESHOLD:
            warnings.add(W.LOW_CONFIDENCE)

        review_count = features.review_count_analyzed or 0
        if review_count < MIN_REVIEW_COUNT:
            warnings.add(W.INSUFFICIENT_REVIEWS)

        updated_at = features.last_updated_at
        if updated_at is None or now - _as_utc(updated_at) > STALE_AFTER:
            warnings.add(W.STALE_FEATURES)

        return DataQuality(
            confidence=confidence,
            review_count=review_count,
            last_updated_at=updated_at,
            warnings=_ordered(warnings),
        )

    # ── Feature match ──────────────────────────────────────────────────────────

    def _feature_score(
        self,
        features: Optional[RestaurantFeatures],
        query_features: dict[str, ParsedFeature],
    ) -> tuple[float, dict[str, FeatureMatch], bool]:
        """Returns (score, per-feature matches, saw_invalid_value)."""
        if features is None:
            return 0.0, {}, False

        weighted_sum = 0.0
        total_weight = 0.0
        matches: dict[str, FeatureMatch] = {}
        invalid = False

        for name, wanted in query_features.items():
            raw = features.values.get(name)
            if raw is None:
                continue

            actual = unit_score(raw)
            if actual is None:
                invalid = True
                continue

            match = round(max(0.0, 1.0 - abs(wanted.target - actual)), 2)
            matches[name] = FeatureMatch(target=wanted.target, actual=actual, match=match)

            if wanted.required and match < STRONG_MATCH:
                weighted_sum += match * wanted.weight * REQUIRED_MISS_FACTOR
            else:
                weighted_sum += match * wanted.weight
            total_weight += wanted.weight

        score = weighted_sum / total_weight if total_weight > 0 else 0.0
        return round(score, 2), matches, invalid

    # ── Final blend ────────────────────────────────────────────────────────────

    def _final_score(
        self,
        feature_score: float,
        google_rating: Optional[float],
        distance: float,
        radius_miles: float,
        confidence: Optional[float],
        warnings: set[DataQualityWarning],
    ) -> float:
        if W.MISSING_FEATURES in warnings:
            return 0.0

        if google_rating is not None:
            normalized_rating = min(1.0, max(0.0, google_rating / 5))
        else:
            normalized_rating = NEUTRAL_RATING
        proximity = 1 - min(distance / radius_miles, 1.0)

        base = (
            FEATURE_WEIGHT * feature_score
            + RATING_WEIGHT * normalized_rating
            + PROXIMITY_WEIGHT * proximity
        )
        if confidence is None:
            confidence = DEFAULT_CONFIDENCE
        multiplier = CONFIDENCE_BASE + CONFIDENCE_SPAN * confidence
        penalty = sum(WARNING_PENALTIES[w] for w in warnings)

        return round(min(1.0, max(0.0, base * multiplier - penalty)), 2)

    # ── Explanation ────────────────────────────────────────────────────────────

    def _explanation(
        self,
        name: str,
        matches: dict[str, FeatureMatch],
        quality: DataQuality,
    ) -> str:
        if W.MISSING_FEATURES in quality.warnings:
            return (
                f"{name} does not have enough recent review data to judge "
                "how well it fits your search yet."
            )

        strong = sorted(
            ((feature, m.match) for feature, m in matches.items() if m.match >= STRONG_MATCH),
            key=lambda item: item[1],
            reverse=True,
        )
        labels = [FEATURE_LABELS.get(feature, feature) for feature, _ in strong[:3]]

        if not labels:
            text = f"{name} is a good option in the area."
        elif len(labels) == 1:
            text = f"{name} stands out for {labels[0]}."
        else:
            text = (
                f"{name} matches your preferences with strong scores for "
                f"{', '.join(labels[:-1])} and {labels[-1]}."
            )

        if _CAVEAT_WARNINGS.intersection(quality.warnings):
            if quality.review_count > 0:
                noun = "review" if quality.review_count == 1 else "reviews"
                text += (
                    f" Confidence is limited: based on {quality.review_count} "
                    f"analyzed {noun} that may be sparse or outdated."
                )
            else:
                text += " Confidence is limited: review data is sparse or outdated."

        return text
