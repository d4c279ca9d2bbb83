"""
Query parser — free text → ParsedQuery (target feature values + filters).

LLMQueryParser asks the model for structured JSON and validates it with
pydantic; on any LLM or validation failure it degrades to the rule-based
parser so search never fails because the model did.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from pydantic import ValidationError

from dinescope.config import settings
from dinescope.schemas.features import ParsedFeature, ParsedQuery
from dinescope.services.llm import LLMError, call_llm_json
from dinescope.utils.prompts import build_query_parser_prompt

logger = logging.getLogger(__name__)

KNOWN_CUISINES: list[str] = [
    "italian", "japanese", "sushi", "thai", "mexican", "indian", "french",
    "korean", "mediterranean", "vegan", "vegetarian", "bbq", "pizza",
    "seafood", "brunch",
]

# (trigger substrings, {feature: (weight, target, required)})
_FEATURE_RULES: list[tuple[tuple[str, ...], dict[str, tuple[float, float, bool]]]] = [
    (("romantic", "date"), {
        "romantic": (1.0, 0.9, True),
        "good_for_dates": (1.0, 0.9, False),
    }),
    (("cozy", "intimate"), {"cozy": (0.9, 0.85, False)}),
    (("quiet", "not loud"), {"noise_level": (0.8, 0.2, False)}),
    (("casual", "relaxed"), {
        "casual": (0.8, 0.85, False),
        "formality": (0.6, 0.2, False),
    }),
    (("family", "kids"), {"family_friendly": (0.9, 0.9, False)}),
]

# Checked in order; the first tier with a matching phrase wins
_PRICE_RULES: list[tuple[tuple[str, ...], int]] = [
    (("cheap", "budget", "affordable"), 1),
    (("moderate", "not too expensive"), 2),
    (("fine dining", "high-end", "expensive"), 4),
]


class QueryParser(Protocol):
    async def parse(self, query: str) -> ParsedQuery:
        ...


class RuleBasedQueryParser:
    """Keyword parser. Deterministic, offline, and the LLM parser's safety net."""

    async def parse(self, query: str) -> ParsedQuery:
        return self.parse_text(query)

    def parse_text(self, query: str) -> ParsedQuery:
        lower = query.lower()

        features: dict[str, ParsedFeature] = {}
        for needles, rule in _FEATURE_RULES:
            if any(n in lower for n in needles):
                for name, (weight, target, required) in rule.items():
                    features[name] = ParsedFeature(weight=weight, target=target, required=required)

        return ParsedQuery(
            features=features,
            intent="general",
            confidence=0.5,
            cuisines=self._cuisines(lower),
            max_price=self._max_price(lower),
        )

    def _cuisines(self, lower: str) -> Optional[list[str]]:
        found = [c.title() for c in KNOWN_CUISINES if c in lower]
        return found or None

    def _max_price(self, lower: str) -> Optional[int]:
        for needles, level in _PRICE_RULES:
            if any(n in lower for n in needles):
                return level
        return None


class LLMQueryParser:
    """Model-backed parser with rule-based fallback."""

    def __init__(self, fallback: Optional[RuleBasedQueryParser] = None) -> None:
        self._fallback = fallback or RuleBasedQueryParser()

    async def parse(self, query: str) -> ParsedQuery:
        try:
            raw = await call_llm_json(build_query_parser_prompt(query))
            if not isinstance(raw, dict):
                raise LLMError("query parser returned non-object JSON")
            return ParsedQuery.model_validate(raw)
        except (LLMError, ValidationError) as exc:
            logger.warning("Query parsing failed, using rule-based fallback: %s", exc)
            return self._fallback.parse_text(query).model_copy(update={"fallback": True})


def get_query_parser(kind: Optional[str] = None) -> QueryParser:
    """Return the parser named by `kind`, defaulting to settings.query_parser_provider."""
    kind = kind or settings.query_parser_provider
    if kind == "rule_based":
        return RuleBasedQueryParser()
    if kind == "llm":
        return LLMQueryParser()
    raise ValueError(f"Unknown query parser provider: {kind!r}")
