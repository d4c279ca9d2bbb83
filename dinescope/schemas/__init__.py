"""Pydantic schemas package."""

from dinescope.schemas.features import (
    AggregatedFeatureVector,
    FeatureExtraction,
    ParsedFeature,
    ParsedQuery,
    RestaurantFeatures,
)
from dinescope.schemas.monitoring import (
    DataQualitySection,
    LowConfidenceSample,
    MonitoringDashboard,
    QueueSection,
    QueueSummary,
)
from dinescope.schemas.restaurant import (
    Candidate,
    DataQuality,
    DataQualityWarning,
    FeatureMatch,
    GeoPoint,
    RestaurantDetail,
    RestaurantRecord,
    ScoredRestaurant,
)
from dinescope.schemas.search import SearchMeta, SearchRequest, SearchResponse

__all__ = [
    "AggregatedFeatureVector", "FeatureExtraction", "ParsedFeature",
    "ParsedQuery", "RestaurantFeatures",
    "Candidate", "DataQuality", "DataQualityWarning", "FeatureMatch",
    "GeoPoint", "RestaurantDetail", "RestaurantRecord", "ScoredRestaurant",
    "SearchMeta", "SearchRequest", "SearchResponse",
    "DataQualitySection", "LowConfidenceSample", "MonitoringDashboard",
    "QueueSection", "QueueSummary",
]
