"""
Generation Client & Prompt Tests
=================================

Tests:
    - JSON recovery from fenced / prose-wrapped responses
    - Provider error translation (openai → GroundNote errors)
    - Missing-key handling and health check
    - Prompt rendering (strictness, mode rules, repair itemisation)
"""

from __future__ import annotations

from types import SimpleNamespace

import httpx
import openai
import pytest

from groundnote.contract.policy import get_policy
from groundnote.errors import (
    GenerationConfigError,
    GenerationError,
    GenerationRateLimitError,
    GenerationTimeoutError,
)
from groundnote.generate.client import GroqGenerator, check_health, extract_json
from groundnote.generate.prompts import (
    MALFORMED_JSON_ERROR,
    build_repair_prompt,
    build_system_prompt,
    build_user_prompt,
)
from groundnote.schemas.output import Mode


# ────────────────────────────────────────────────────────────────
# extract_json
# ────────────────────────────────────────────────────────────────

class TestExtractJson:

    def test_plain_object(self):
        assert extract_json('{"mode": "interview"}') == {"mode": "interview"}

    def test_fenced_block_preferred(self):
        raw = 'Here you go {"decoy": true}\n```json\n{"mode": "technical"}\n```'
        assert extract_json(raw) == {"mode": "technical"}

    def test_fence_without_language(self):
        assert extract_json('```\n{"a": 1}\n```') == {"a": 1}

    def test_prose_around_object(self):
        raw = 'Sure! Here is the summary: {"items": [{"text": "x"}]} Hope that helps.'
        assert extract_json(raw) == {"items": [{"text": "x"}]}

    def test_braces_in_prose_skipped(self):
        raw = 'Use {curly} braces. {"ok": true}'
        assert extract_json(raw) == {"ok": True}

    def test_unparseable(self):
        assert extract_json("I cannot help with that.") is None
        assert extract_json('{"unterminated": ') is None
        assert extract_json("") is None

    def test_fenced_non_object_skipped(self):
        raw = '```json\n["H1", "H2"]\n```\n```json\n{"mode": "technical"}\n```'
        assert extract_json(raw) == {"mode": "technical"}

    @pytest.mark.parametrize("fenced", ['["a"]', '"just text"', "42"])
    def test_fenced_non_object_only(self, fenced):
        assert extract_json(f"```json\n{fenced}\n```") is None

    def test_broken_fence_falls_through_to_object(self):
        raw = '```json\nnot json\n``` then {"ok": 1}'
        assert extract_json(raw) == {"ok": 1}


# ────────────────────────────────────────────────────────────────
# GroqGenerator
# ────────────────────────────────────────────────────────────────

_REQUEST = httpx.Request("POST", "https://api.groq.com/openai/v1/chat/completions")


def _status_error(cls, status: int):
    response = httpx.Response(status, request=_REQUEST)
    return cls("provider said no", response=response, body=None)


class FakeCompletions:
    def __init__(self, outcome):
        self.outcome = outcome
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if isinstance(self.outcome, Exception):
            raise self.outcome
        message = SimpleNamespace(content=self.outcome)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def generator_with(outcome) -> tuple[GroqGenerator, FakeCompletions]:
    gen = GroqGenerator(api_key="gsk_test", model="llama-3.3-70b-versatile")
    completions = FakeCompletions(outcome)
    gen._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return gen, completions


class TestGroqGenerator:

    def test_request_shape(self):
        gen, completions = generator_with('{"mode": "interview"}')
        result = gen.generate_json("SYS", "USER", temperature=0.2)
        assert result.parsed == {"mode": "interview"}
        assert completions.kwargs["temperature"] == 0.2
        assert completions.kwargs["response_format"] == {"type": "json_object"}
        assert completions.kwargs["messages"][0] == {"role": "system", "content": "SYS"}
        assert completions.kwargs["messages"][1] == {"role": "user", "content": "USER"}

    def test_unparseable_response(self):
        gen, _ = generator_with("no json here")
        result = gen.generate_json("s", "u", 0.3)
        assert result.raw == "no json here"
        assert result.parsed is None

    def test_empty_content_becomes_empty_object(self):
        gen, _ = generator_with(None)
        assert gen.generate("s", "u", 0.3) == "{}"

    def test_missing_key(self):
        gen = GroqGenerator(api_key=None)
        with pytest.raises(GenerationConfigError) as exc_info:
            gen.generate("s", "u", 0.3)
        assert not exc_info.value.retryable
        assert "console.groq.com/keys" in exc_info.value.remediation

    def test_placeholder_key(self):
        with pytest.raises(GenerationConfigError):
            GroqGenerator(api_key="your-groq-api-key-here").generate("s", "u", 0.3)

    def test_rate_limit_is_retryable(self):
        gen, _ = generator_with(_status_error(openai.RateLimitError, 429))
        with pytest.raises(GenerationRateLimitError) as exc_info:
            gen.generate("s", "u", 0.3)
        assert exc_info.value.retryable

    def test_auth_error_is_config_error(self):
        gen, _ = generator_with(_status_error(openai.AuthenticationError, 401))
        with pytest.raises(GenerationConfigError) as exc_info:
            gen.generate("s", "u", 0.3)
        assert exc_info.value.remediation

    def test_timeout_is_retryable(self):
        gen, _ = generator_with(openai.APITimeoutError(request=_REQUEST))
        with pytest.raises(GenerationTimeoutError) as exc_info:
            gen.generate("s", "u", 0.3)
        assert exc_info.value.retryable

    def test_other_api_error(self):
        gen, _ = generator_with(_status_error(openai.InternalServerError, 500))
        with pytest.raises(GenerationError) as exc_info:
            gen.generate("s", "u", 0.3)
        assert type(exc_info.value) is GenerationError
        assert not exc_info.value.retryable

    def test_from_config(self, config):
        gen = GroqGenerator.from_config(config)
        assert gen.model_name == config.generation.model
        assert gen.timeout_s == config.generation.timeout_s


class TestHealth:

    def test_ok(self, config):
        assert check_health(config) == {"ok": True, "model": "llama-3.3-70b-versatile", "error": None}

    def test_missing_key(self, config):
        health = check_health(config.model_copy(update={"groq_api_key": None}))
        assert health["ok"] is False
        assert "GROQ_API_KEY" in health["error"]


# ────────────────────────────────────────────────────────────────
# Prompts
# ────────────────────────────────────────────────────────────────

class TestPrompts:

    def test_strict_forbids_inference(self):
        prompt = build_system_prompt("strict")
        assert "Make NO inferences" in prompt
        assert '"support": "inferred"' not in prompt

    def test_balanced_allows_labelled_inference(self):
        prompt = build_system_prompt("balanced")
        assert '"support": "inferred"' in prompt

    def test_system_prompt_has_literal_braces(self):
        assert "starting with { and ending with }" in build_system_prompt()

    @pytest.mark.parametrize("mode", list(Mode))
    def test_user_prompt_reflects_policy(self, mode):
        prompt = build_user_prompt(mode, "[H1] Alpha.")
        policy = get_policy(mode)
        assert f"MODE: {mode.value}" in prompt
        assert f'"mode": "{mode.value}"' in prompt
        assert policy.item_range_text() in prompt
        assert prompt.rstrip().endswith("No markdown. No explanation.")
        assert "[H1] Alpha." in prompt
        if policy.word_limit is not None:
            assert f"≤ {policy.word_limit}" in prompt
        if policy.item_word_limit is not None:
            assert f"≤ {policy.item_word_limit} words" in prompt

    def test_repair_prompt_itemises_errors(self):
        prompt = build_repair_prompt(
            '{"bad": true}',
            ["[items] too long", "Citation H9 does not exist in highlights"],
            "[H1] Alpha.",
        )
        assert "  1. [items] too long" in prompt
        assert "  2. Citation H9 does not exist in highlights" in prompt
        assert '{"bad": true}' in prompt
        assert "[H1] Alpha." in prompt

    def test_malformed_message(self):
        assert "not valid JSON" in MALFORMED_JSON_ERROR
