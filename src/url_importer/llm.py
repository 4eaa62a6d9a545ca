"""
Generation Backend
==================

This module centralizes the OpenAI-compatible chat completion call used both
for content-type detection and for note generation, so both reuse the same
retry behaviour, model fallback order and error translation.

Any object with a matching ``generate`` method can stand in for
`OpenAIGenerationBackend`; the classifier and the pipeline only depend on the
`GenerationBackend` protocol.
"""

from __future__ import annotations

from typing import Protocol

import openai
import structlog

from .config import Settings
from .errors import AuthFailure, GenerationFailed, NetworkFailure
from .utils import redact_secret, retry

log = structlog.get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant that turns web content into concise, "
    "well-structured Markdown notes."
)

# Retried against the same model; everything else moves on to the next model.
RETRYABLE_OPENAI_EXCEPTIONS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)

# Reasoning models reject a custom temperature.
_NO_TEMPERATURE_PREFIXES = ("gpt-5", "o1", "o3", "o4")


class GenerationBackend(Protocol):
    def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> str: ...


class OpenAIChatMixin:
    """
    The single chat completion call behind both content-type detection and
    note generation.

    Errors in ``RETRYABLE_OPENAI_EXCEPTIONS`` are retried per model before
    `OpenAIGenerationBackend` moves on to the next entry in ``AI_MODELS``.
    Retry counts come from ``self.settings``.
    """

    @retry(retryable_exceptions=RETRYABLE_OPENAI_EXCEPTIONS)
    def _create_completion(self, **kwargs):
        """One chat completion request for one model; the caller picks the model."""
        return openai.chat.completions.create(**kwargs)


def _supports_temperature(model: str) -> bool:
    return not model.lower().startswith(_NO_TEMPERATURE_PREFIXES)


def _is_temperature_error(error: openai.BadRequestError) -> bool:
    return "temperature" in str(error).lower()


class OpenAIGenerationBackend(OpenAIChatMixin):
    """
    Generation backend backed by OpenAI or an OpenAI-compatible server (Ollama).

    Models from ``AI_MODELS`` are tried in order. Authentication failures
    abort immediately since every model shares the same credentials.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def generate(
        self,
        prompt: str,
        *,
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> str:
        messages = [
            {"role": "system", "content": system_prompt or DEFAULT_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

        last_error: Exception | None = None
        for model in self.settings.AI_MODELS:
            params = {
                "model": model,
                "messages": messages,
                "timeout": self.settings.REQUEST_TIMEOUT,
            }
            if temperature is not None and _supports_temperature(model):
                params["temperature"] = temperature

            try:
                text = self._complete(params)
            except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
                raise AuthFailure(self._redact(str(e))) from e
            except openai.APIConnectionError as e:
                log.warning("Generation model unreachable", model=model, error=self._redact(str(e)))
                last_error = NetworkFailure(self._redact(str(e)))
                continue
            except openai.APIError as e:
                log.warning("Generation model failed", model=model, error=self._redact(str(e)))
                last_error = GenerationFailed(self._redact(str(e)))
                continue
            except GenerationFailed as e:
                log.warning("Generation model returned no choices", model=model)
                last_error = e
                continue

            if text.strip():
                log.debug("Generation succeeded", model=model, chars=len(text))
                return text
            log.warning("Generation model returned empty content", model=model)
            last_error = GenerationFailed(f"Model {model} returned empty content")

        log.error("All generation models failed", models=self.settings.AI_MODELS)
        if isinstance(last_error, NetworkFailure):
            raise last_error
        raise GenerationFailed(
            str(last_error) if last_error else "No generation models configured"
        )

    def _complete(self, params: dict) -> str:
        try:
            response = self._create_completion(**params)
        except openai.BadRequestError as e:
            if "temperature" not in params or not _is_temperature_error(e):
                raise
            log.info("Retrying without temperature", model=params["model"])
            params = {k: v for k, v in params.items() if k != "temperature"}
            response = self._create_completion(**params)
        if not response.choices:
            raise GenerationFailed(f"Model {params['model']} returned no choices")
        return response.choices[0].message.content or ""

    def _redact(self, text: str) -> str:
        return redact_secret(text, self.settings.OPENAI_API_KEY)
