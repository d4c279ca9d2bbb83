import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from dinescope.services.llm import LLMClient, LLMError, parse_json_reply, strip_fences


def test_strip_fences():
    assert strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_fences('  {"a": 1} ') == '{"a": 1}'


def test_parse_json_reply_recovers_object_from_prose():
    assert parse_json_reply('Sure! Here you go: {"romantic": 0.8} Hope that helps.') == {"romantic": 0.8}


def test_parse_json_reply_rejects_garbage():
    with pytest.raises(LLMError):
        parse_json_reply("no json here")


def test_fallback_model_answers_when_primary_fails():
    client = LLMClient(primary_model="primary", fallback_model="fallback")
    side_effects = [RuntimeError("429 RESOURCE_EXHAUSTED"), '{"ok": true}']
    with patch.object(client, "_generate_once", new=AsyncMock(side_effect=side_effects)) as mock_gen:
        reply = asyncio.run(client.generate("prompt", json_mode=True))

    assert reply.model == "fallback"
    assert reply.text == '{"ok": true}'
    assert mock_gen.await_count == 2


def test_error_when_every_model_fails():
    client = LLMClient(primary_model="primary", fallback_model="fallback")
    with patch.object(
        client, "_generate_once", new=AsyncMock(side_effect=TimeoutError("slow"))
    ):
        with pytest.raises(LLMError):
            asyncio.run(client.generate("prompt"))
