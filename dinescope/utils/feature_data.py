"""
Canonical experiential feature definitions — single source of truth for all feature logic.
Extraction, aggregation, query parsing and scoring import exclusively from here.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Optional


class FeatureName(str, Enum):
    """Closed set of experiential features. Every value is a score in [0, 1]."""

    ROMANTIC = "romantic"
    COZY = "cozy"
    CASUAL = "casual"
    NOISE_LEVEL = "noise_level"
    ENERGY_LEVEL = "energy_level"
    CROWDEDNESS = "crowdedness"
    GOOD_FOR_DATES = "good_for_dates"
    GOOD_FOR_GROUPS = "good_for_groups"
    FAMILY_FRIENDLY = "family_friendly"
    BUSINESS_APPROPRIATE = "business_appropriate"
    CELEBRATION_WORTHY = "celebration_worthy"
    FAST_SERVICE = "fast_service"
    ATTENTIVE_SERVICE = "attentive_service"
    AUTHENTIC = "authentic"
    CREATIVE_MENU = "creative_menu"
    COMFORT_FOOD = "comfort_food"
    HEALTHY_OPTIONS = "healthy_options"
    PORTIONS_LARGE = "portions_large"
    VEGAN_FRIENDLY = "vegan_friendly"
    PHOTOGENIC_FOOD = "photogenic_food"
    DECOR_QUALITY = "decor_quality"
    PHOTO_FRIENDLY_LIGHTING = "photo_friendly_lighting"
    NICE_VIEWS = "nice_views"
    TRENDY = "trendy"
    OUTDOOR_SEATING = "outdoor_seating"
    EASY_PARKING = "easy_parking"
    RESERVATIONS_NEEDED = "reservations_needed"
    LATE_NIGHT = "late_night"
    FORMALITY = "formality"
    GOOD_VALUE = "good_value"
    SPLURGE_WORTHY = "splurge_worthy"
    POPULARITY = "popularity"


# Declaration order; iteration over features always follows it
FEATURE_NAMES: tuple[str, ...] = tuple(f.value for f in FeatureName)

# Bump whenever the extraction prompt changes meaningfully
PROMPT_VERSION = "feature-extraction-v1"

# snake_case (queries, extraction JSON, DB columns) → camelCase (client payloads)
FEATURE_COLUMN_MAP: dict[str, str] = {
    "romantic": "romantic",
    "cozy": "cozy",
    "casual": "casual",
    "noise_level": "noiseLevel",
    "energy_level": "energyLevel",
    "crowdedness": "crowdedness",
    "good_for_dates": "goodForDates",
    "good_for_groups": "goodForGroups",
    "family_friendly": "familyFriendly",
    "business_appropriate": "businessAppropriate",
    "celebration_worthy": "celebrationWorthy",
    "fast_service": "fastService",
    "attentive_service": "attentiveService",
    "authentic": "authentic",
    "creative_menu": "creativeMenu",
    "comfort_food": "comfortFood",
    "healthy_options": "healthyOptions",
    "portions_large": "portionsLarge",
    "vegan_friendly": "veganFriendly",
    "photogenic_food": "photogenicFood",
    "decor_quality": "decorQuality",
    "photo_friendly_lighting": "photoFriendlyLighting",
    "nice_views": "niceViews",
    "trendy": "trendy",
    "outdoor_seating": "outdoorSeating",
    "easy_parking": "easyParking",
    "reservations_needed": "reservationsNeeded",
    "late_night": "lateNight",
    "formality": "formality",
    "good_value": "goodValue",
    "splurge_worthy": "splurgeWorthy",
    "popularity": "popularity",
}

# camelCase → snake_case
COLUMN_FEATURE_MAP: dict[str, str] = {v: k for k, v in FEATURE_COLUMN_MAP.items()}

# Human-readable labels used in explanations
FEATURE_LABELS: dict[str, str] = {
    name: name.replace("_", " ") for name in FEATURE_NAMES
}

# Guidance bullets rendered into the extraction prompt
FEATURE_DESCRIPTIONS: dict[str, list[str]] = {
    "romantic": ["Intimate, date-worthy atmosphere", "Candlelight, soft music, couples"],
    "cozy": ["Warm, snug, comfortable space"],
    "casual": ["Relaxed, no dress code, come-as-you-are"],
    "noise_level": ["0.0 = very quiet, 1.0 = very loud"],
    "energy_level": ["Lively buzz vs calm and subdued"],
    "crowdedness": ["How packed the room feels; long waits"],
    "good_for_dates": ["Explicitly recommended for a date"],
    "good_for_groups": ["Large tables, shareable plates, handles parties"],
    "family_friendly": ["Kids welcome, high chairs, kids menu"],
    "business_appropriate": ["Suitable for client meetings or work lunches"],
    "celebration_worthy": ["Birthdays, anniversaries, special occasions"],
    "fast_service": ["Quick seating and food arrival"],
    "attentive_service": ["Staff check in, remember details, anticipate needs"],
    "authentic": ["True to the cuisine's origins"],
    "creative_menu": ["Inventive dishes, unusual combinations"],
    "comfort_food": ["Hearty, familiar, soul-warming dishes"],
    "healthy_options": ["Light, fresh, nutritious choices"],
    "portions_large": ["Generous servings, leftovers"],
    "vegan_friendly": ["Clear vegan options beyond a token salad"],
    "photogenic_food": ["Plating people photograph"],
    "decor_quality": ["Striking interior design"],
    "photo_friendly_lighting": ["Good natural or flattering light"],
    "nice_views": ["Skyline, water or garden views"],
    "trendy": ["Hyped, fashionable, of-the-moment"],
    "outdoor_seating": ["Patio, terrace, sidewalk tables"],
    "easy_parking": ["Lot, valet, or easy street parking"],
    "reservations_needed": ["Hard to get a table without booking"],
    "late_night": ["Open and serving late"],
    "formality": ["0.0 = very casual, 1.0 = jacket required"],
    "good_value": ["Quality is high for the price"],
    "splurge_worthy": ["Expensive but worth it"],
    "popularity": ["Widely known, frequently recommended"],
}


def feature_from_key(key: str) -> Optional[str]:
    """
    Resolve a feature key in either presentation form to its canonical name.
    Returns None for keys that are not part of the closed feature set.
    """
    if key in FEATURE_COLUMN_MAP:
        return key
    return COLUMN_FEATURE_MAP.get(key)


def to_column_key(name: str) -> str:
    """Canonical feature name → camelCase client key."""
    return FEATURE_COLUMN_MAP[name]


# ── Value coercion ───────────────────────────────────────────────────────────


def finite_float(raw: Any) -> Optional[float]:
    """Stored or model-supplied number as a finite float; None, bools and junk become None."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def unit_score(raw: Any) -> Optional[float]:
    """Like finite_float, but values outside [0, 1] are unusable too."""
    value = finite_float(raw)
    if value is None or value < 0.0 or value > 1.0:
        return None
    return value
