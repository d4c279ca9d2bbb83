"""
Prompt template builders for all LLM calls.
All prompt strings live here — no hardcoded prompts elsewhere in the codebase.
"""

from __future__ import annotations

import json
from typing import Optional

from dinescope.utils.feature_data import FEATURE_DESCRIPTIONS, FEATURE_NAMES

_MAX_REVIEW_CHARS = 4_000


def _feature_guidance() -> str:
    lines: list[str] = []
    for name in FEATURE_NAMES:
        lines.append(f"- {name}:")
        for point in FEATURE_DESCRIPTIONS.get(name, []):
            lines.append(f"    - {point}")
    return "\n".join(lines)


# ── Feature extraction ───────────────────────────────────────────────────────


def build_extraction_prompt(review_text: str, rating: Optional[int]) -> str:
    """
    Build the prompt that scores one review against every experiential feature.

    The model must return null for features the review does not mention.
    Absent evidence is not a low score.
    """
    payload = json.dumps(
        {"review_text": review_text[:_MAX_REVIEW_CHARS], "rating": rating},
        ensure_ascii=False,
    )

    return f"""You evaluate restaurant reviews and score specific experiential features.

## RULES
- Only score features that are explicitly mentioned or strongly implied.
- Scores are 0.0 (very negative) to 1.0 (very positive).
- Return null when the review does not mention the feature.
- Include a confidence value between 0.0 and 1.0 for your overall extraction quality.
- Keep keys in snake_case as provided. Do not add features that are not listed.

## FEATURE GUIDANCE
{_feature_guidance()}

## REVIEW
{payload}

## OUTPUT FORMAT
Output only valid JSON. No markdown fences. No preamble. No explanation.

{{
  "features": {{"romantic": 0.9, "noise_level": 0.2}},
  "confidence": 0.82
}}"""


# ── Query parsing ────────────────────────────────────────────────────────────


def build_query_parser_prompt(query: str) -> str:
    """Build the prompt that turns a free-text search into target feature values."""
    return f"""You are a restaurant query parser. Extract feature preferences from the user's search.

## AVAILABLE FEATURES
{", ".join(FEATURE_NAMES)}

## RULES
For each feature mentioned or implied, return:
- weight: 0.0-1.0 (importance)
- target: 0.0-1.0 (desired value)
- required: true only for must-haves

## USER QUERY
{query}

## OUTPUT FORMAT
Output only valid JSON. No markdown fences. No preamble. No explanation.

{{
  "features": {{
    "romantic": {{"weight": 1.0, "target": 0.9, "required": true}}
  }},
  "intent": "date_night",
  "confidence": 0.95,
  "cuisines": ["Italian"],
  "max_price": 3,
  "occasion_type": "romantic_dinner"
}}"""
