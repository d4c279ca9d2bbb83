"""Review and per-review feature extraction ORM models."""

import uuid

from sqlalchemy import (
    Column, Integer, Text, String, Numeric, Boolean, JSON,
    TIMESTAMP, ForeignKey, func,
)
from sqlalchemy.orm import relationship

from dinescope.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Review(Base):
    """
    A user review for a restaurant.
    is_processed flips to True once a feature extraction has been stored.
    """

    __tablename__ = "reviews"

    id = Column(String(36), primary_key=True, default=_uuid)
    restaurant_id = Column(
        String(36),
        ForeignKey("restaurants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    source_review_id = Column(Text, nullable=True, unique=True)
    author_name = Column(Text, nullable=True)
    rating = Column(Integer, nullable=True)   # 1..5
    text = Column(Text, nullable=True)
    published_at = Column(TIMESTAMP(timezone=True), nullable=True)

    is_processed = Column(Boolean, nullable=False, server_default="0")
    created_at = Column(
        TIMESTAMP(timezone=True), nullable=False, server_default=func.now()
    )

    # Relationships
    restaurant = relationship("Restaurant", back_populates="reviews")
    extraction = relationship(
        "FeatureExtractionRecord",
        back_populates="review",
        uselist=False,
        cascade="all, delete-orphan",
    )


class FeatureExtractionRecord(Base):
    """
    One extraction per review. Re-extraction overwrites by review_id.
    `features` holds FeatureName → score | null as JSON.
    """

    __tablename__ = "feature_extractions"

    id = Column(String(36), primary_key=True, default=_uuid)
    review_id = Column(
        String(36),
        ForeignKey("reviews.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    restaurant_id = Column(
        String(36),
        ForeignKey("restaurants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    features = Column(JSON, nullable=False, default=dict)
    extraction_confidence = Column(Numeric(3, 2, asdecimal=False), nullable=True)
    model_used = Column(Text, nullable=False)
    prompt_version = Column(Text, nullable=False)
    extracted_at = Column(TIMESTAMP(timezone=True), nullable=False)

    created_at = Column(
        TIMESTAMP(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    review = relationship("Review", back_populates="extraction")
