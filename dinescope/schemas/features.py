"""Pydantic schemas for per-review extractions, aggregated vectors and parsed queries."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from dinescope.utils.feature_data import FEATURE_NAMES, feature_from_key, finite_float, unit_score


class FeatureExtraction(BaseModel):
    """
    One review's LLM-derived feature scores, joined with the review's star
    rating and publish date. Input to FeatureAggregator.aggregate().

    Feature values are kept raw; the aggregator decides which ones are usable.
    """

    review_id: Optional[str] = None
    restaurant_id: Optional[str] = None
    features: dict[str, Any] = Field(default_factory=dict)
    extraction_confidence: Optional[float] = None
    review_rating: Optional[int] = None
    model_used: str = "unknown"
    prompt_version: str = "unknown"
    extracted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    review_published_at: Optional[datetime] = None

    @field_validator("extraction_confidence", mode="before")
    @classmethod
    def _confidence(cls, value: Any) -> Optional[float]:
        # Unparseable or out-of-range confidence is treated as absent
        return unit_score(value)

    @field_validator("review_rating", mode="before")
    @classmethod
    def _rating(cls, value: Any) -> Optional[int]:
        if value is None:
            return None
        try:
            rating = int(round(float(value)))
        except (TypeError, ValueError):
            return None
        return rating if 1 <= rating <= 5 else None


class AggregatedFeatureVector(BaseModel):
    """One restaurant's blended feature scores across all of its extractions."""

    values: dict[str, Optional[float]] = Field(
        default_factory=lambda: {name: None for name in FEATURE_NAMES}
    )
    confidence_score: Optional[float] = None
    review_count_analyzed: int = 0
    model_version: Optional[str] = None


class RestaurantFeatures(BaseModel):
    """
    A persisted feature vector as read back for scoring.

    `values` may hold whatever the storage boundary produced; the scorer
    validates each value it reads. Keys in either snake_case or camelCase
    are normalised to canonical names; unknown keys are dropped.
    """

    model_config = ConfigDict(from_attributes=True)

    values: dict[str, Any] = Field(default_factory=dict)
    confidence_score: Optional[float] = None
    review_count_analyzed: Optional[int] = None
    last_updated_at: Optional[datetime] = None
    model_version: Optional[str] = None

    @field_validator("values", mode="before")
    @classmethod
    def _normalise_keys(cls, value: Any) -> dict[str, Any]:
        if not isinstance(value, dict):
            return {}
        normalised: dict[str, Any] = {}
        for key, raw in value.items():
            name = feature_from_key(str(key))
            if name is not None:
                normalised[name] = raw
        return normalised

    @field_validator("confidence_score", mode="before")
    @classmethod
    def _confidence(cls, value: Any) -> Optional[float]:
        return finite_float(value)


class ParsedFeature(BaseModel):
    """Desired value and importance of a single feature in a search query."""

    weight: float = Field(..., ge=0.0, le=1.0)
    target: float = Field(..., ge=0.0, le=1.0)
    required: bool = False


class ParsedQuery(BaseModel):
    """Structured representation of a natural-language search."""

    features: dict[str, ParsedFeature] = Field(default_factory=dict)
    intent: str = "general"
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    cuisines: Optional[list[str]] = None
    max_price: Optional[int] = Field(
        None, ge=1, le=4, validation_alias=AliasChoices("max_price", "maxPrice")
    )
    occasion_type: Optional[str] = Field(
        None, validation_alias=AliasChoices("occasion_type", "occasionType")
    )
    # Set when a model parse failed and the keyword rules stood in; never serialised
    fallback: bool = Field(False, exclude=True)

    @field_validator("features", mode="before")
    @classmethod
    def _known_features_only(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        known: dict[str, Any] = {}
        for key, entry in value.items():
            name = feature_from_key(str(key))
            if name is not None:
                known[name] = entry
        return known
