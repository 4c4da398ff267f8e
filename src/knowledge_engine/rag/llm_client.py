"""LiteLLM clients for embeddings and answer generation.

All model traffic goes through this module. Responses are validated here and
converted to plain ``list[float]`` / ``str``; nothing loosely typed leaves it.

Embedding requests are retried with exponential backoff on transient
failures (rate limits, connection errors, timeouts, 5xx) up to a bounded
number of attempts. Generation uses LiteLLM's built-in ``num_retries``.
"""

from __future__ import annotations

import asyncio
import logging
import math
import os
import random
from collections.abc import Awaitable, Callable
from typing import Any

import litellm

from knowledge_engine.errors import (
    ConfigError,
    EmbeddingError,
    GenerationError,
    TransientEmbeddingError,
)

# LiteLLM prints provider hints to stdout otherwise.
litellm.suppress_debug_info = True

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    litellm.RateLimitError,
    litellm.APIConnectionError,
    litellm.Timeout,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
)


# Keyless local providers; every other provider reads <PROVIDER>_API_KEY
# unless listed in _KEY_VARS.
_LOCAL_PROVIDERS = frozenset({"ollama", "ollama_chat", "lm_studio"})
_KEY_VARS: dict[str, str] = {
    "vertex_ai": "GOOGLE_APPLICATION_CREDENTIALS",
    "bedrock": "AWS_ACCESS_KEY_ID",
}


def _provider(model: str) -> str:
    head, sep, _ = model.partition("/")
    return head.lower() if sep else "openai"


def validate_api_key(model: str) -> None:
    """Fail fast when the credential LiteLLM needs for *model* is not exported.

    Raises:
        ConfigError: Naming the environment variable to set.
    """
    provider = _provider(model)
    if provider in _LOCAL_PROVIDERS:
        return
    var = _KEY_VARS.get(provider, f"{provider.upper()}_API_KEY")
    if not os.environ.get(var):
        raise ConfigError(f"No credentials for '{model}': export {var} before running kengine.")


# ------------------------------------------------------------------
# Response parsing
# ------------------------------------------------------------------


def parse_embedding_response(response: Any) -> list[float]:
    """Extract the first embedding vector from a LiteLLM embedding response.

    Raises:
        EmbeddingError: If the response has no data or the vector is not a
            non-empty list of finite numbers.
    """
    data = getattr(response, "data", None)
    if not data:
        raise EmbeddingError("Embedding response did not contain any data.")
    item = data[0]
    try:
        raw = item["embedding"]
    except (KeyError, TypeError):
        raw = getattr(item, "embedding", None)
    if not isinstance(raw, (list, tuple)) or not raw:
        raise EmbeddingError("Embedding response contained no vector.")

    vector: list[float] = []
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise EmbeddingError(f"Embedding vector contains a non-numeric value: {value!r}")
        if not math.isfinite(value):
            raise EmbeddingError("Embedding vector contains a non-finite value.")
        vector.append(float(value))
    return vector


def parse_completion_response(response: Any) -> str:
    """Extract the text of the first choice from a LiteLLM completion response.

    Raises:
        GenerationError: If there is no choice or its content is empty.
    """
    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError) as exc:
        raise GenerationError("Completion response did not contain any choices.") from exc
    if not isinstance(content, str) or not content.strip():
        raise GenerationError("Completion response was empty.")
    return content


# ------------------------------------------------------------------
# Embeddings
# ------------------------------------------------------------------


class Embedder:
    """Async embedding client with bounded retry and exponential backoff.

    Args:
        model: LiteLLM embedding model string (provider/model format).
        max_attempts: Total attempts per text, including the first one.
        base_delay: Delay before the second attempt; doubles each retry.
        max_delay: Upper bound for a single backoff delay.
        sleep: Awaitable sleep function (injected by tests).
    """

    def __init__(
        self,
        model: str,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 20.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.model = model
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

    async def embed(self, text: str) -> list[float]:
        """Return the embedding vector for *text*.

        Raises:
            EmbeddingError: After ``max_attempts`` transient failures, or
                immediately on a non-transient failure / malformed response.
        """
        attempt = 1
        while True:
            try:
                return await self._request(text)
            except TransientEmbeddingError as exc:
                if attempt >= self.max_attempts:
                    raise EmbeddingError(
                        f"Embedding failed after {attempt} attempts: {exc}"
                    ) from exc
                delay = self.backoff_delay(attempt)
                logger.warning(
                    "Embedding attempt %d/%d failed (%s); retrying in %.2fs",
                    attempt,
                    self.max_attempts,
                    exc,
                    delay,
                )
                await self._sleep(delay)
            attempt += 1

    def backoff_delay(self, attempt: int) -> float:
        """Exponential backoff with jitter for the retry after *attempt*."""
        delay = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        return delay + random.uniform(0, delay / 4)

    async def _request(self, text: str) -> list[float]:
        try:
            response = await litellm.aembedding(model=self.model, input=[text])
        except _TRANSIENT_ERRORS as exc:
            raise TransientEmbeddingError(str(exc)) from exc
        except Exception as exc:
            raise EmbeddingError(f"Embedding request failed: {exc}") from exc
        return parse_embedding_response(response)


# ------------------------------------------------------------------
# Generation
# ------------------------------------------------------------------


class Generator:
    """Async chat-completion client used to synthesize answers."""

    def __init__(
        self,
        model: str,
        max_tokens: int = 1024,
        temperature: float = 0.0,
        num_retries: int = 3,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.num_retries = num_retries

    async def complete(self, messages: list[dict[str, str]]) -> str:
        """Send *messages* and return the first choice's text verbatim.

        Raises:
            GenerationError: On API failure after retries or an empty response.
        """
        try:
            response = await litellm.acompletion(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                num_retries=self.num_retries,
            )
        except Exception as exc:
            raise GenerationError(f"Generation request failed: {exc}") from exc
        return parse_completion_response(response)
