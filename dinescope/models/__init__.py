"""SQLAlchemy ORM models package."""

from dinescope.database import Base
from dinescope.models.restaurant import Restaurant, RestaurantFeature
from dinescope.models.review import FeatureExtractionRecord, Review
from dinescope.models.query import UserQuery
from dinescope.models.task import ProcessingTask

__all__ = [
    "Base", "Restaurant", "RestaurantFeature", "Review",
    "FeatureExtractionRecord", "UserQuery", "ProcessingTask",
]
