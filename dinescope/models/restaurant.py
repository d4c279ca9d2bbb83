"""Restaurant and aggregated restaurant-feature ORM models."""

import uuid

from sqlalchemy import (
    Column, Integer, Text, String, Numeric, Boolean, JSON,
    TIMESTAMP, Double, ForeignKey, func,
)
from sqlalchemy.orm import relationship

from dinescope.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _score_column() -> Column:
    # Feature scores are stored as NUMERIC(3,2) and read back as floats
    return Column(Numeric(3, 2, asdecimal=False), nullable=True)


class Restaurant(Base):
    """A restaurant seeded from the places API."""

    __tablename__ = "restaurants"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(Text, nullable=False)
    google_place_id = Column(Text, nullable=True, unique=True)

    latitude = Column(Double, nullable=False)
    longitude = Column(Double, nullable=False)
    address = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    state = Column(Text, nullable=True)
    zip_code = Column(Text, nullable=True)

    price_level = Column(Integer, nullable=True)   # 1..4
    google_rating = Column(Numeric(2, 1, asdecimal=False), nullable=True)
    google_review_count = Column(Integer, nullable=True)
    cuisine_tags = Column(JSON, nullable=False, default=list)
    photo_urls = Column(JSON, nullable=False, default=list)
    phone = Column(Text, nullable=True)
    website = Column(Text, nullable=True)
    hours = Column(JSON, nullable=True)

    is_active = Column(Boolean, nullable=False, server_default="1")
    created_at = Column(
        TIMESTAMP(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
    last_scraped_at = Column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    features = relationship(
        "RestaurantFeature",
        back_populates="restaurant",
        uselist=False,
        cascade="all, delete-orphan",
    )
    reviews = relationship(
        "Review", back_populates="restaurant", cascade="all, delete-orphan"
    )


class RestaurantFeature(Base):
    """
    One aggregated feature row per restaurant.
    Fully replaced on every aggregation run, never merged.
    Column names match FeatureName values exactly.
    """

    __tablename__ = "restaurant_features"

    restaurant_id = Column(
        String(36),
        ForeignKey("restaurants.id", ondelete="CASCADE"),
        primary_key=True,
    )

    romantic = _score_column()
    cozy = _score_column()
    casual = _score_column()
    noise_level = _score_column()
    energy_level = _score_column()
    crowdedness = _score_column()
    good_for_dates = _score_column()
    good_for_groups = _score_column()
    family_friendly = _score_column()
    business_appropriate = _score_column()
    celebration_worthy = _score_column()
    fast_service = _score_column()
    attentive_service = _score_column()
    authentic = _score_column()
    creative_menu = _score_column()
    comfort_food = _score_column()
    healthy_options = _score_column()
    portions_large = _score_column()
    vegan_friendly = _score_column()
    photogenic_food = _score_column()
    decor_quality = _score_column()
    photo_friendly_lighting = _score_column()
    nice_views = _score_column()
    trendy = _score_column()
    outdoor_seating = _score_column()
    easy_parking = _score_column()
    reservations_needed = _score_column()
    late_night = _score_column()
    formality = _score_column()
    good_value = _score_column()
    splurge_worthy = _score_column()
    popularity = _score_column()

    confidence_score = _score_column()
    review_count_analyzed = Column(Integer, nullable=True)
    model_version = Column(Text, nullable=True)
    last_updated_at = Column(
        TIMESTAMP(timezone=True), nullable=False, server_default=func.now()
    )

    # Relationships
    restaurant = relationship("Restaurant", back_populates="features")
