"""
Restaurants router — restaurant detail with its aggregated feature profile.

Endpoints:
  GET /restaurants/{restaurant_id}
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from dinescope.database import get_db
from dinescope.schemas.features import RestaurantFeatures
from dinescope.schemas.restaurant import GeoPoint, RestaurantDetail
from dinescope.services.restaurant_store import fetch_restaurant
from dinescope.services.scorer import Scorer
from dinescope.utils.feature_data import FEATURE_NAMES, finite_float, to_column_key

router = APIRouter(prefix="/restaurants", tags=["restaurants"])

_scorer = Scorer()


def _camel_features(features: RestaurantFeatures) -> dict[str, Optional[float]]:
    return {
        to_column_key(name): finite_float(features.values.get(name))
        for name in FEATURE_NAMES
    }


@router.get("/{restaurant_id}", response_model=RestaurantDetail)
async def get_restaurant(
    restaurant_id: str,
    db: AsyncSession = Depends(get_db),
) -> RestaurantDetail:
    """Full restaurant record, camelCase feature map and data-quality assessment."""
    candidate = await fetch_restaurant(db, restaurant_id)
    if candidate is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Restaurant not found",
        )

    r = candidate.restaurant
    features = candidate.features
    return RestaurantDetail(
        id=r.id,
        name=r.name,
        address=r.address,
        city=r.city,
        coordinates=GeoPoint(lat=r.latitude, lng=r.longitude),
        price_level=r.price_level,
        rating=r.google_rating,
        review_count=r.google_review_count,
        cuisine_tags=r.cuisine_tags,
        phone=r.phone,
        website=r.website,
        photos=r.photo_urls,
        hours=r.hours,
        features=_camel_features(features) if features is not None else None,
        model_version=features.model_version if features is not None else None,
        data_quality=_scorer.evaluate_data_quality(features),
    )
