"""Pydantic schemas for the operations dashboard."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class QueueSummary(BaseModel):
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0


class QueueSection(BaseModel):
    summary: QueueSummary
    pending_by_type: dict[str, int] = Field(default_factory=dict)
    stuck_tasks: int = 0


class LowConfidenceSample(BaseModel):
    restaurant_id: str
    name: str
    confidence: Optional[float] = None
    review_count: int = 0
    last_updated_at: Optional[datetime] = None


class DataQualitySection(BaseModel):
    total_restaurants: int = 0
    restaurants_with_features: int = 0
    restaurants_missing_features: int = 0
    average_confidence: float = 0.0
    average_review_count: float = 0.0
    low_confidence_count: int = 0
    stale_feature_count: int = 0
    recent_aggregation_at: Optional[datetime] = None
    low_confidence_samples: list[LowConfidenceSample] = Field(default_factory=list)


class MonitoringDashboard(BaseModel):
    """Response for GET /monitoring."""

    generated_at: datetime
    queue: QueueSection
    data_quality: DataQualitySection
