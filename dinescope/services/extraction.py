"""
Feature extraction providers — turn one review's text into feature scores.

  LLMExtractionProvider        — prompt + JSON call via the LLM service
  RuleBasedExtractionProvider  — deterministic substring rules, no network

The provider is chosen once from settings.extraction_provider.
Business logic never checks the environment to decide.

extract_batch() runs a provider over many reviews with bounded concurrency
and settles every review: one failure never aborts the rest of the batch.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from pydantic import BaseModel, Field

from dinescope.config import settings
from dinescope.services.llm import call_llm_json
from dinescope.utils.feature_data import FEATURE_NAMES, PROMPT_VERSION, finite_float
from dinescope.utils.prompts import build_extraction_prompt

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.6


class ExtractionError(Exception):
    """Raised when a review cannot be turned into features. Not retried."""


@dataclass
class ReviewForExtraction:
    """The slice of a review an extraction provider needs."""

    id: str
    text: str
    rating: Optional[int] = None


class ExtractionResult(BaseModel):
    """Feature scores for one review. Every FeatureName is present (None = not mentioned)."""

    review_id: str
    features: dict[str, Optional[float]]
    confidence: float = Field(..., ge=0.0, le=1.0)
    prompt_version: str
    model_used: str


@dataclass
class BatchExtractionOutcome:
    """Exactly one of result / error is set."""

    review: ReviewForExtraction
    result: Optional[ExtractionResult] = None
    error: Optional[Exception] = None


class ExtractionProvider(Protocol):
    name: str
    prompt_version: str

    async def extract(self, review: ReviewForExtraction) -> ExtractionResult:
        ...


# ── Sanitisation ───────────────────────────────────────────────────────────────


def _clamp_score(value: float) -> float:
    return min(1.0, max(0.0, round(value, 3)))


def sanitize_score(value: Any) -> Optional[float]:
    """None / non-numeric → None; numeric → clamped to [0, 1] at 3 decimals."""
    number = finite_float(value)
    return None if number is None else _clamp_score(number)


def sanitize_feature_map(raw: Any) -> dict[str, Optional[float]]:
    """Keep only known features; unknown keys are dropped, missing ones become None."""
    source = raw if isinstance(raw, dict) else {}
    return {name: sanitize_score(source.get(name)) for name in FEATURE_NAMES}


def _require_text(review: ReviewForExtraction) -> None:
    if not review.text or not review.text.strip():
        raise ExtractionError(f"Review {review.id} has no text to extract features from")


# ── Providers ──────────────────────────────────────────────────────────────────


class LLMExtractionProvider:
    """Scores reviews with the configured LLM (primary + fallback)."""

    prompt_version = PROMPT_VERSION

    def __init__(self, model_name: Optional[str] = None) -> None:
        self.name = model_name or settings.llm_model

    async def extract(self, review: ReviewForExtraction) -> ExtractionResult:
        _require_text(review)

        prompt = build_extraction_prompt(review.text, review.rating)
        payload = await call_llm_json(prompt, temperature=0.2)
        if not isinstance(payload, dict):
            raise ExtractionError(f"Extraction for review {review.id} returned non-object JSON")

        confidence = sanitize_score(payload.get("confidence"))
        return ExtractionResult(
            review_id=review.id,
            features=sanitize_feature_map(payload.get("features")),
            confidence=DEFAULT_CONFIDENCE if confidence is None else confidence,
            prompt_version=self.prompt_version,
            model_used=self.name,
        )


# (substrings, feature, score); later rules override earlier ones
_KEYWORD_RULES: list[tuple[tuple[str, ...], str, float]] = [
    (("romantic", "date"), "romantic", 0.9),
    (("romantic", "date"), "good_for_dates", 0.9),
    (("cozy", "intimate"), "cozy", 0.85),
    (("noisy", "loud"), "noise_level", 0.8),
    (("quiet",), "noise_level", 0.2),
]


class RuleBasedExtractionProvider:
    """
    Deterministic keyword scorer for offline runs and tests.
    Confidence is 0.75 when any rule fired, 0.5 otherwise.
    """

    name = "rule-based"
    prompt_version = PROMPT_VERSION

    async def extract(self, review: ReviewForExtraction) -> ExtractionResult:
        _require_text(review)
        lower = review.text.lower()

        scores: dict[str, float] = {}
        for needles, feature, score in _KEYWORD_RULES:
            if any(n in lower for n in needles):
                scores[feature] = _clamp_score(score)

        if "service" in lower and "slow" in lower:
            scores["fast_service"] = 0.1
            scores["attentive_service"] = 0.3

        return ExtractionResult(
            review_id=review.id,
            features={name: scores.get(name) for name in FEATURE_NAMES},
            confidence=0.75 if scores else 0.5,
            prompt_version=self.prompt_version,
            model_used=self.name,
        )


def get_extraction_provider(kind: Optional[str] = None) -> ExtractionProvider:
    """Return the provider named by `kind`, defaulting to settings.extraction_provider."""
    kind = kind or settings.extraction_provider
    if kind == "rule_based":
        return RuleBasedExtractionProvider()
    if kind == "llm":
        return LLMExtractionProvider()
    raise ValueError(f"Unknown extraction provider: {kind!r}")


# ── Batch ──────────────────────────────────────────────────────────────────────


async def extract_batch(
    provider: ExtractionProvider,
    reviews: list[ReviewForExtraction],
    concurrency: Optional[int] = None,
) -> list[BatchExtractionOutcome]:
    """
    Extract every review with at most `concurrency` calls in flight.
    Outcomes are returned in input order.
    """
    limit = max(1, min(6, concurrency or settings.extraction_concurrency))
    semaphore = asyncio.Semaphore(limit)

    async def _one(review: ReviewForExtraction) -> ExtractionResult:
        async with semaphore:
            return await provider.extract(review)

    settled = await asyncio.gather(*(_one(r) for r in reviews), return_exceptions=True)

    outcomes: list[BatchExtractionOutcome] = []
    for review, outcome in zip(reviews, settled):
        if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, Exception):
            logger.warning("Feature extraction failed for review %s: %s", review.id, outcome)
            outcomes.append(BatchExtractionOutcome(review=review, error=outcome))
        else:
            outcomes.append(BatchExtractionOutcome(review=review, result=outcome))
    return outcomes
