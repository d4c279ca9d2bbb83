import pytest

from dinescope.schemas.features import ParsedFeature, ParsedQuery
from dinescope.schemas.restaurant import DataQualityWarning, GeoPoint
from dinescope.services.scorer import WARNING_PENALTIES, Scorer

from conftest import NOW, make_candidate, make_features

scorer = Scorer()
ORIGIN = GeoPoint(lat=40.7128, lng=-74.0060)


def query(**features):
    return ParsedQuery(
        features={
            name: ParsedFeature(weight=w, target=t, required=r)
            for name, (w, t, r) in features.items()
        }
    )


def score_one(candidate, parsed, radius=10.0):
    results = scorer.score_restaurants([candidate], parsed, ORIGIN, radius, now=NOW)
    assert len(results) == 1
    return results[0]


ROMANTIC = query(romantic=(1.0, 0.9, False), good_for_dates=(1.0, 0.9, False))


def test_perfect_match_scores_high_without_warnings():
    candidate = make_candidate(
        rating=5.0,
        features=make_features({"romantic": 0.9, "good_for_dates": 0.9}),
    )
    result = score_one(candidate, ROMANTIC)
    assert result.feature_score == 1.0
    assert result.match_score >= 0.95
    assert result.data_quality.warnings == []
    assert result.distance_miles < 0.01
    assert result.feature_matches["romantic"].match == 1.0


def test_required_feature_miss_is_penalised():
    features = make_features({"romantic": 0.2})
    required = score_one(make_candidate(features=features), query(romantic=(1.0, 0.9, True)))
    optional = score_one(make_candidate(features=features), query(romantic=(1.0, 0.9, False)))
    assert required.feature_matches["romantic"].match == 0.3
    assert required.feature_score == 0.15
    assert optional.feature_score == 0.3
    assert required.match_score < optional.match_score
    assert required.match_score < 0.6


def test_missing_features_score_zero_with_explanation():
    result = score_one(make_candidate(features=None), ROMANTIC)
    assert result.match_score == 0.0
    assert result.feature_score == 0.0
    assert result.feature_matches == {}
    assert result.data_quality.warnings == [DataQualityWarning.MISSING_FEATURES]
    assert "does not have enough recent review data" in result.explanation


def test_weak_data_lowers_score_and_adds_caveat():
    candidate = make_candidate(
        features=make_features(
            {"romantic": 0.9, "good_for_dates": 0.9}, confidence=0.3, reviews=3, age_days=60
        ),
    )
    result = score_one(candidate, ROMANTIC)
    assert result.data_quality.warnings == [
        DataQualityWarning.LOW_CONFIDENCE,
        DataQualityWarning.INSUFFICIENT_REVIEWS,
        DataQualityWarning.STALE_FEATURES,
    ]
    assert result.match_score < result.feature_score
    assert result.match_score == 0.57
    assert "based on 3 analyzed reviews" in result.explanation


def test_single_review_caveat_is_singular():
    candidate = make_candidate(features=make_features({"romantic": 0.9}, reviews=1))
    result = score_one(candidate, query(romantic=(1.0, 0.9, False)))
    assert "based on 1 analyzed review that" in result.explanation


def test_caveat_without_review_count():
    candidate = make_candidate(features=make_features({"romantic": 0.9}, reviews=0))
    result = score_one(candidate, query(romantic=(1.0, 0.9, False)))
    assert result.explanation.endswith("Confidence is limited: review data is sparse or outdated.")


def test_null_confidence_is_low_confidence():
    candidate = make_candidate(features=make_features({"romantic": 0.9}, confidence=None))
    result = score_one(candidate, query(romantic=(1.0, 0.9, False)))
    assert result.data_quality.confidence is None
    assert DataQualityWarning.LOW_CONFIDENCE in result.data_quality.warnings


@pytest.mark.parametrize("bad_value", ["lots", 1.5, -0.2])
def test_malformed_feature_value_becomes_warning(bad_value):
    candidate = make_candidate(features=make_features({"romantic": bad_value, "cozy": 0.8}))
    result = score_one(candidate, query(romantic=(1.0, 0.8, False), cozy=(1.0, 0.8, False)))
    assert DataQualityWarning.INVALID_FEATURE_VALUE in result.data_quality.warnings
    assert "romantic" not in result.feature_matches
    assert result.feature_matches["cozy"].match == 1.0
    assert result.feature_score == 1.0


def test_camel_case_feature_keys_are_understood():
    candidate = make_candidate(features=make_features({"goodForDates": 0.9}))
    result = score_one(candidate, query(good_for_dates=(1.0, 0.9, False)))
    assert result.feature_matches["good_for_dates"].actual == 0.9


def test_explanation_lists_strong_matches():
    one = score_one(
        make_candidate(name="Luna", features=make_features({"romantic": 0.9})),
        query(romantic=(1.0, 0.9, False)),
    )
    assert one.explanation == "Luna stands out for romantic."

    two = score_one(
        make_candidate(name="Luna", features=make_features({"romantic": 0.9, "good_for_dates": 0.9})),
        ROMANTIC,
    )
    assert two.explanation == (
        "Luna matches your preferences with strong scores for romantic and good for dates."
    )

    none = score_one(
        make_candidate(name="Luna", features=make_features({"romantic": 0.1})),
        query(romantic=(1.0, 0.9, False)),
    )
    assert none.explanation == "Luna is a good option in the area."


def test_candidates_outside_radius_are_dropped():
    near = make_candidate(id="near", features=make_features({"romantic": 0.9}))
    far = make_candidate(id="far", lat=41.7128, features=make_features({"romantic": 0.9}))
    results = scorer.score_restaurants([far, near], ROMANTIC, ORIGIN, 10.0, now=NOW)
    assert [r.id for r in results] == ["near"]


def test_closer_restaurant_ranks_higher():
    features = make_features({"romantic": 0.9})
    near = make_candidate(id="near", features=features)
    farther = make_candidate(id="farther", lat=40.7828, features=features)
    results = scorer.score_restaurants([farther, near], ROMANTIC, ORIGIN, 10.0, now=NOW)
    assert [r.id for r in results] == ["near", "farther"]
    assert results[0].match_score > results[1].match_score


def test_equal_scores_keep_input_order():
    features = make_features({"romantic": 0.9})
    a = make_candidate(id="a", features=features)
    b = make_candidate(id="b", features=features)
    forward = scorer.score_restaurants([a, b], ROMANTIC, ORIGIN, 10.0, now=NOW)
    backward = scorer.score_restaurants([b, a], ROMANTIC, ORIGIN, 10.0, now=NOW)
    assert [r.id for r in forward] == ["a", "b"]
    assert [r.id for r in backward] == ["b", "a"]


def test_scores_stay_in_unit_range():
    candidates = [
        make_candidate(id="bad", rating=None, features=make_features(
            {"romantic": "x"}, confidence=0.0, reviews=0, age_days=400
        )),
        make_candidate(id="good", rating=5.0, features=make_features(
            {"romantic": 0.9, "good_for_dates": 0.9}, confidence=1.0
        )),
        make_candidate(id="none", features=None),
    ]
    for result in scorer.score_restaurants(candidates, ROMANTIC, ORIGIN, 10.0, now=NOW):
        assert 0.0 <= result.match_score <= 1.0
        assert 0.0 <= result.feature_score <= 1.0


def test_empty_query_has_zero_feature_score():
    result = score_one(make_candidate(features=make_features({"romantic": 0.9})), ParsedQuery())
    assert result.feature_score == 0.0
    assert result.feature_matches == {}


def test_evaluate_data_quality_is_query_independent():
    fresh = scorer.evaluate_data_quality(make_features({"romantic": 0.9}), now=NOW)
    assert fresh.warnings == []
    assert fresh.confidence == 0.9
    assert fresh.review_count == 20

    missing = scorer.evaluate_data_quality(None, now=NOW)
    assert missing.warnings == [DataQualityWarning.MISSING_FEATURES]
    assert missing.review_count == 0


def test_every_warning_has_a_penalty():
    assert set(WARNING_PENALTIES) == set(DataQualityWarning)
