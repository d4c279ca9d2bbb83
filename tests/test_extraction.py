import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from dinescope.services.extraction import (
    ExtractionError,
    LLMExtractionProvider,
    ReviewForExtraction,
    RuleBasedExtractionProvider,
    extract_batch,
    get_extraction_provider,
    sanitize_feature_map,
    sanitize_score,
)
from dinescope.utils.feature_data import FEATURE_NAMES, PROMPT_VERSION


def test_sanitize_score():
    assert sanitize_score(None) is None
    assert sanitize_score("abc") is None
    assert sanitize_score(True) is None
    assert sanitize_score(float("nan")) is None
    assert sanitize_score(1.7) == 1.0
    assert sanitize_score(-0.2) == 0.0
    assert sanitize_score("0.45") == 0.45
    assert sanitize_score(0.12345) == 0.123


def test_sanitize_feature_map_keeps_only_known_features():
    cleaned = sanitize_feature_map({"romantic": 0.8, "wifi": 0.9, "cozy": "n/a"})
    assert set(cleaned) == set(FEATURE_NAMES)
    assert cleaned["romantic"] == 0.8
    assert cleaned["cozy"] is None
    assert "wifi" not in cleaned
    assert sanitize_feature_map(None)["romantic"] is None


def test_rule_based_provider_scores_keywords():
    provider = RuleBasedExtractionProvider()
    review = ReviewForExtraction(id="rev-1", text="Romantic spot, but service was slow.", rating=4)
    result = asyncio.run(provider.extract(review))

    assert result.review_id == "rev-1"
    assert result.model_used == "rule-based"
    assert result.prompt_version == PROMPT_VERSION
    assert result.features["romantic"] == 0.9
    assert result.features["good_for_dates"] == 0.9
    assert result.features["fast_service"] == 0.1
    assert result.features["attentive_service"] == 0.3
    assert result.features["cozy"] is None
    assert result.confidence == 0.75


def test_rule_based_provider_low_confidence_without_matches():
    result = asyncio.run(
        RuleBasedExtractionProvider().extract(ReviewForExtraction(id="r", text="It was fine."))
    )
    assert all(v is None for v in result.features.values())
    assert result.confidence == 0.5


def test_empty_review_text_raises():
    with pytest.raises(ExtractionError):
        asyncio.run(RuleBasedExtractionProvider().extract(ReviewForExtraction(id="r", text="   ")))


def test_llm_provider_sanitises_model_output():
    payload = {
        "features": {"romantic": 1.4, "cozy": "warm", "noise_level": 0.25, "made_up": 0.5},
        "confidence": "not a number",
    }
    with patch(
        "dinescope.services.extraction.call_llm_json", new=AsyncMock(return_value=payload)
    ) as mock_llm:
        provider = LLMExtractionProvider(model_name="test-model")
        result = asyncio.run(provider.extract(ReviewForExtraction(id="r1", text="Lovely", rating=5)))

    mock_llm.assert_awaited_once()
    assert result.features["romantic"] == 1.0
    assert result.features["cozy"] is None
    assert result.features["noise_level"] == 0.25
    assert "made_up" not in result.features
    assert result.confidence == 0.6
    assert result.model_used == "test-model"


def test_llm_provider_rejects_non_object_json():
    with patch(
        "dinescope.services.extraction.call_llm_json", new=AsyncMock(return_value=[1, 2])
    ):
        with pytest.raises(ExtractionError):
            asyncio.run(LLMExtractionProvider().extract(ReviewForExtraction(id="r", text="ok")))


class _FlakyProvider:
    name = "flaky"
    prompt_version = PROMPT_VERSION

    def __init__(self):
        self.in_flight = 0
        self.peak = 0
        self._inner = RuleBasedExtractionProvider()

    async def extract(self, review):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            if review.id == "bad":
                raise RuntimeError("model exploded")
            return await self._inner.extract(review)
        finally:
            self.in_flight -= 1


def test_batch_isolates_failures_and_keeps_order():
    provider = _FlakyProvider()
    reviews = [
        ReviewForExtraction(id="a", text="romantic"),
        ReviewForExtraction(id="bad", text="romantic"),
        ReviewForExtraction(id="c", text="quiet"),
    ]
    outcomes = asyncio.run(extract_batch(provider, reviews, concurrency=2))

    assert [o.review.id for o in outcomes] == ["a", "bad", "c"]
    assert outcomes[0].result is not None and outcomes[0].error is None
    assert outcomes[1].result is None and isinstance(outcomes[1].error, RuntimeError)
    assert outcomes[2].result.features["noise_level"] == 0.2


def test_batch_respects_concurrency_limit():
    provider = _FlakyProvider()
    reviews = [ReviewForExtraction(id=str(i), text="cozy") for i in range(10)]
    asyncio.run(extract_batch(provider, reviews, concurrency=2))
    assert provider.peak <= 2


def test_batch_concurrency_is_capped():
    provider = _FlakyProvider()
    reviews = [ReviewForExtraction(id=str(i), text="cozy") for i in range(20)]
    asyncio.run(extract_batch(provider, reviews, concurrency=50))
    assert provider.peak <= 6


def test_get_extraction_provider():
    assert isinstance(get_extraction_provider("rule_based"), RuleBasedExtractionProvider)
    assert isinstance(get_extraction_provider("llm"), LLMExtractionProvider)
    with pytest.raises(ValueError):
        get_extraction_provider("bogus")
