"""
Generation Client — Groq via the OpenAI-compatible API
=======================================================

The text-generation collaborator is opaque to the rest of the pipeline:
it takes a system instruction, a user instruction and a temperature and
returns raw text that should contain one JSON object.

Groq exposes an OpenAI-compatible endpoint, so the official `openai`
SDK is used with a different base_url. SDK-level retries are disabled:
the orchestrator owns the retry budget (one structural repair) and
rate limits must reach the caller rather than be retried silently.

Error translation (provider → GroundNote):
    openai.AuthenticationError / PermissionDeniedError → GenerationConfigError
    openai.RateLimitError                              → GenerationRateLimitError
    openai.APITimeoutError                             → GenerationTimeoutError
    any other openai.APIError                          → GenerationError

Usage:
    export GROQ_API_KEY="gsk_..."
    from groundnote.generate.client import GroqGenerator
    generator = GroqGenerator.from_config(get_config())
    result = generator.generate_json(system_prompt, user_prompt, temperature=0.3)
    result.parsed  # dict, or None when no JSON object could be recovered

Free tier: https://console.groq.com/docs/rate-limits
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import openai

from groundnote.config import PLACEHOLDER_SECRETS, GroundNoteConfig
from groundnote.errors import (
    GenerationConfigError,
    GenerationError,
    GenerationRateLimitError,
    GenerationTimeoutError,
)

logger = logging.getLogger("groundnote.generate.client")

KEY_REMEDIATION = (
    "Get a free key at https://console.groq.com/keys and set it as "
    "GROQ_API_KEY in your environment or .env file."
)
RATE_LIMIT_REMEDIATION = "Wait a moment and try again (free tier: 30 req/min, 1000 req/day)."

_FENCE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)


@dataclass(frozen=True)
class GenerationResult:
    """Raw completion text plus the JSON object recovered from it (if any)."""
    raw: str
    parsed: Optional[Any]


# ── JSON recovery ──────────────────────────────────────────────────

def extract_json(raw: str) -> Optional[dict]:
    """
    Recover a JSON object from an LLM response.

    Fenced ```json blocks are tried first; otherwise the first
    well-formed ``{...}`` span in the text is decoded. Prose before or
    after the object is ignored. Only JSON objects count; a fenced list
    or scalar is skipped.

    Returns:
        The decoded object, or None when no object is found.
    """
    if not raw:
        return None

    for match in _FENCE.finditer(raw):
        try:
            obj = json.loads(match.group(1).strip())
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict):
            return obj

    decoder = json.JSONDecoder()
    start = raw.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(raw, start)
            if isinstance(obj, dict):
                return obj
        except json.JSONDecodeError:
            pass
        start = raw.find("{", start + 1)
    return None


# ── Generators ─────────────────────────────────────────────────────

class BaseGenerator(ABC):
    """Abstract text-generation collaborator."""

    model_name: str = "base"

    @abstractmethod
    def generate(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        """
        Produce raw completion text.

        Raises:
            GenerationError (or a subclass) when the provider call fails.
        """
        ...

    def generate_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
    ) -> GenerationResult:
        raw = self.generate(system_prompt, user_prompt, temperature)
        parsed = extract_json(raw)
        if parsed is None:
            logger.warning(f"{self.model_name}: response was not parseable JSON ({len(raw)} chars)")
        return GenerationResult(raw=raw, parsed=parsed)


class GroqGenerator(BaseGenerator):
    """
    Chat-completion generator backed by Groq.

    Args:
        api_key: Groq API key. Placeholder values count as missing.
        model: Groq model ID.
        base_url: OpenAI-compatible endpoint.
        timeout_s: Per-call timeout in seconds.
        max_tokens: Completion token cap.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "llama-3.3-70b-versatile",
        base_url: str = "https://api.groq.com/openai/v1",
        timeout_s: float = 45.0,
        max_tokens: int = 2048,
    ):
        self.api_key = api_key
        self.model_name = model
        self.base_url = base_url
        self.timeout_s = timeout_s
        self.max_tokens = max_tokens
        self._client = None

    @classmethod
    def from_config(cls, config: GroundNoteConfig) -> "GroqGenerator":
        gen = config.generation
        return cls(
            api_key=config.groq_api_key,
            model=gen.model,
            base_url=gen.base_url,
            timeout_s=gen.timeout_s,
            max_tokens=gen.max_tokens,
        )

    def _get_client(self) -> openai.OpenAI:
        """Lazy-initialize the OpenAI-compatible client for Groq."""
        if self._client is None:
            if (self.api_key or "").strip() in PLACEHOLDER_SECRETS:
                raise GenerationConfigError("GROQ_API_KEY is not set.", remediation=KEY_REMEDIATION)
            self._client = openai.OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout_s,
                max_retries=0,
            )
        return self._client

    def generate(self, system_prompt: str, user_prompt: str, temperature: float) -> str:
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=self.model_name,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise GenerationConfigError(
                f"Groq rejected the API key: {e}", remediation=KEY_REMEDIATION
            ) from e
        except openai.RateLimitError as e:
            raise GenerationRateLimitError(
                f"Groq rate limit reached: {e}", remediation=RATE_LIMIT_REMEDIATION
            ) from e
        except openai.APITimeoutError as e:
            raise GenerationTimeoutError(
                f"Groq did not respond within {self.timeout_s:.0f}s"
            ) from e
        except openai.APIError as e:
            raise GenerationError(f"Groq API error: {e}") from e

        if not response.choices:
            return "{}"
        return response.choices[0].message.content or "{}"


# ── Health ─────────────────────────────────────────────────────────

def check_health(config: GroundNoteConfig) -> dict[str, Any]:
    """
    Report whether generation is configured, without spending an API call.

    Returns:
        {"ok": bool, "model": str, "error": str | None}
    """
    model = config.generation.model
    if not config.has_groq_key:
        return {"ok": False, "model": model, "error": f"GROQ_API_KEY is not set. {KEY_REMEDIATION}"}
    return {"ok": True, "model": model, "error": None}
