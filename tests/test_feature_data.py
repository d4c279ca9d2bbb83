import math

import pytest

from dinescope.utils.feature_data import (
    COLUMN_FEATURE_MAP,
    FEATURE_COLUMN_MAP,
    FEATURE_DESCRIPTIONS,
    FEATURE_LABELS,
    FEATURE_NAMES,
    FeatureName,
    feature_from_key,
    finite_float,
    to_column_key,
    unit_score,
)


def test_feature_set_is_closed_and_ordered():
    assert len(FEATURE_NAMES) == 32
    assert FEATURE_NAMES[0] == "romantic"
    assert FEATURE_NAMES[-1] == "popularity"
    assert len(set(FEATURE_NAMES)) == len(FEATURE_NAMES)


def test_every_feature_has_column_key_label_and_description():
    for name in FEATURE_NAMES:
        assert name in FEATURE_COLUMN_MAP
        assert name in FEATURE_LABELS
        assert FEATURE_DESCRIPTIONS.get(name)


def test_column_map_is_a_bijection():
    assert len(set(FEATURE_COLUMN_MAP.values())) == len(FEATURE_NAMES)
    for name, column in FEATURE_COLUMN_MAP.items():
        assert COLUMN_FEATURE_MAP[column] == name


def test_feature_from_key_accepts_both_forms():
    assert feature_from_key("noise_level") == "noise_level"
    assert feature_from_key("noiseLevel") == "noise_level"
    assert feature_from_key("goodForDates") == FeatureName.GOOD_FOR_DATES.value
    assert feature_from_key("wifi_quality") is None


def test_to_column_key():
    assert to_column_key("photo_friendly_lighting") == "photoFriendlyLighting"
    assert to_column_key("romantic") == "romantic"


def test_labels_are_human_readable():
    assert FEATURE_LABELS["good_for_dates"] == "good for dates"


@pytest.mark.parametrize("raw, expected", [
    (0.42, 0.42),
    ("0.7", 0.7),
    (0, 0.0),
    (1, 1.0),
    (1.5, None),
    (-0.1, None),
    (math.nan, None),
    (math.inf, None),
    (True, None),
    ("high", None),
    (None, None),
    ([0.5], None),
])
def test_unit_score(raw, expected):
    assert unit_score(raw) == expected


def test_finite_float_keeps_out_of_range_numbers():
    assert finite_float(1.5) == 1.5
    assert finite_float("-2") == -2.0
    assert finite_float(math.nan) is None
    assert finite_float(False) is None
    assert finite_float("n/a") is None
