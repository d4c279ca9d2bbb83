"""Pydantic schemas for restaurants, scoring results and data-quality annotations."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from dinescope.schemas.features import RestaurantFeatures


class DataQualityWarning(str, Enum):
    """
    Flags describing why a restaurant's feature data should be trusted less.
    Declaration order is the order warnings are reported in.
    """

    MISSING_FEATURES = "missing_features"
    LOW_CONFIDENCE = "low_confidence"
    INSUFFICIENT_REVIEWS = "insufficient_reviews"
    STALE_FEATURES = "stale_features"
    INVALID_FEATURE_VALUE = "invalid_feature_value"


class GeoPoint(BaseModel):
    """A user's search origin."""

    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)


class RestaurantRecord(BaseModel):
    """Restaurant identity, location and display fields as stored."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    latitude: float
    longitude: float
    address: Optional[str] = None
    city: Optional[str] = None
    price_level: Optional[int] = None
    google_rating: Optional[float] = None
    google_review_count: Optional[int] = None
    cuisine_tags: list[str] = Field(default_factory=list)
    photo_urls: list[str] = Field(default_factory=list)
    phone: Optional[str] = None
    website: Optional[str] = None
    hours: Optional[dict[str, Any]] = None


class Candidate(BaseModel):
    """A restaurant paired with its aggregated features (None if never aggregated)."""

    restaurant: RestaurantRecord
    features: Optional[RestaurantFeatures] = None


class FeatureMatch(BaseModel):
    """How one restaurant feature compares to the query's target."""

    target: float
    actual: float
    match: float


class DataQuality(BaseModel):
    """Trustworthiness of a restaurant's feature data, independent of the query."""

    confidence: Optional[float] = None
    review_count: int = 0
    last_updated_at: Optional[datetime] = None
    warnings: list[DataQualityWarning] = Field(default_factory=list)


class ScoredRestaurant(BaseModel):
    """A single ranked search result."""

    id: str
    name: str
    latitude: float
    longitude: float
    price_level: Optional[int] = None
    google_rating: Optional[float] = None
    cuisine_tags: list[str] = Field(default_factory=list)
    photo_urls: list[str] = Field(default_factory=list)

    distance_miles: float
    feature_score: float                  # 0–1, raw weighted feature match
    match_score: float                    # 0–1, final ranking score
    feature_matches: dict[str, FeatureMatch] = Field(default_factory=dict)
    data_quality: DataQuality
    explanation: str


class RestaurantDetail(BaseModel):
    """Response for GET /restaurants/{id}."""

    id: str
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    coordinates: GeoPoint
    price_level: Optional[int] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    cuisine_tags: list[str] = Field(default_factory=list)
    phone: Optional[str] = None
    website: Optional[str] = None
    photos: list[str] = Field(default_factory=list)
    hours: Optional[dict[str, Any]] = None

    # camelCase feature key → value, via the static feature naming table
    features: Optional[dict[str, Optional[float]]] = None
    model_version: Optional[str] = None
    data_quality: DataQuality
