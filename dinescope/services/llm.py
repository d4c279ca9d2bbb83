"""
LLM service — Google Generative AI client shared by extraction and query parsing.

Attempt chain (first success wins):
  1. LLM_MODEL           (default: gemini-2.5-flash)  30 s, JSON mode when asked
  2. LLM_FALLBACK_MODEL  (default: gemma-3-12b-it)    60 s, plain text

Models are built on first use, so importing this module never needs a key.
LLMError is raised when every attempt fails or the reply is not valid JSON.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

import google.generativeai as genai

from dinescope.config import settings

logger = logging.getLogger(__name__)

PRIMARY_TIMEOUT_SECONDS  = 30
FALLBACK_TIMEOUT_SECONDS = 60

_QUOTA_INDICATORS = ("resource_exhausted", "429", "quota", "rate limit")
_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class LLMError(Exception):
    """Raised when no model produced a usable reply."""


@dataclass(frozen=True)
class LLMReply:
    text: str
    model: str


@dataclass(frozen=True)
class _Attempt:
    model_name: str
    timeout: int
    supports_json_mode: bool


def _is_quota_error(exc: Exception) -> bool:
    msg = str(exc).lower()
    return any(indicator in msg for indicator in _QUOTA_INDICATORS)


def strip_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` block, if any."""
    return _FENCE_RE.sub("", text.strip()).strip()


def parse_json_reply(text: str) -> Any:
    """
    Parse a model reply as JSON. Falls back to the outermost {...} span when
    the model wrapped the object in prose. Raises LLMError otherwise.
    """
    cleaned = strip_fences(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start != -1 and end > start:
            try:
                return json.loads(cleaned[start:end + 1])
            except json.JSONDecodeError:
                pass
        raise LLMError(f"Invalid JSON from model: {exc}") from exc


class LLMClient:
    """Primary + fallback Generative AI models behind one async call."""

    def __init__(
        self,
        primary_model: Optional[str] = None,
        fallback_model: Optional[str] = None,
    ) -> None:
        self._attempts = [
            _Attempt(primary_model or settings.llm_model, PRIMARY_TIMEOUT_SECONDS, True),
            _Attempt(fallback_model or settings.llm_fallback_model, FALLBACK_TIMEOUT_SECONDS, False),
        ]
        self._models: dict[str, genai.GenerativeModel] = {}
        self._configured = False

    def _model(self, name: str) -> genai.GenerativeModel:
        if not self._configured:
            if settings.google_api_key:
                genai.configure(api_key=settings.google_api_key)
            self._configured = True
        if name not in self._models:
            self._models[name] = genai.GenerativeModel(name)
        return self._models[name]

    async def _generate_once(
        self,
        attempt: _Attempt,
        prompt: str,
        temperature: float,
        json_mode: bool,
    ) -> str:
        config: dict[str, Any] = {"temperature": temperature}
        if json_mode and attempt.supports_json_mode:
            config["response_mime_type"] = "application/json"

        model = self._model(attempt.model_name)
        response = await asyncio.wait_for(
            asyncio.to_thread(
                model.generate_content,
                prompt,
                generation_config=genai.types.GenerationConfig(**config),
            ),
            timeout=attempt.timeout,
        )
        text = response.text
        if not text or not text.strip():
            raise LLMError(f"Empty reply from {attempt.model_name}")
        return text

    async def generate(
        self,
        prompt: str,
        temperature: float = 0.3,
        json_mode: bool = False,
    ) -> LLMReply:
        """Try each model in order; return the first non-empty reply."""
        errors: list[str] = []
        for index, attempt in enumerate(self._attempts):
            try:
                text = await self._generate_once(attempt, prompt, temperature, json_mode)
            except Exception as exc:
                reason = "quota exhausted" if _is_quota_error(exc) else exc.__class__.__name__
                errors.append(f"{attempt.model_name}: {exc}")
                if index + 1 < len(self._attempts):
                    logger.warning(
                        "Model '%s' failed (%s); trying '%s'.",
                        attempt.model_name, reason, self._attempts[index + 1].model_name,
                    )
                continue

            if index > 0:
                logger.info("Fallback model '%s' succeeded.", attempt.model_name)
            return LLMReply(text=text, model=attempt.model_name)

        logger.error("All LLM attempts failed: %s", "; ".join(errors))
        raise LLMError("All models failed. " + "; ".join(errors))


_default_client = LLMClient()


async def call_llm_json(prompt: str, temperature: float = 0.3) -> Any:
    """Generate in JSON mode and return the parsed payload."""
    reply = await _default_client.generate(prompt, temperature=temperature, json_mode=True)
    logger.debug("JSON reply from %s (%d chars)", reply.model, len(reply.text))
    return parse_json_reply(reply.text)
