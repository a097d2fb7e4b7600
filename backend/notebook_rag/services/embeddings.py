from __future__ import annotations

import asyncio
import hashlib
import logging
import math
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

import httpx

from ..config import AppConfig
from .errors import EmbeddingProviderError, MalformedEmbedding

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\w+")

SleepFn = Callable[[float], Awaitable[None]]


class EmbeddingBackend(Protocol):
    async def embed(self, text: str) -> list[float]:
        ...


@dataclass
class GeminiEmbeddingBackend:
    api_key: str
    model: str
    base_url: str = "https://generativelanguage.googleapis.com"
    timeout: float = 30.0
    transport: httpx.AsyncBaseTransport | None = None

    async def embed(self, text: str) -> list[float]:
        url = f"{self.base_url}/v1beta/models/{self.model}:embedContent"
        payload = {
            "model": f"models/{self.model}",
            "content": {"parts": [{"text": text}]},
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, json=payload, headers={"x-goog-api-key": self.api_key})
        except httpx.RequestError as e:
            raise EmbeddingProviderError(None, f"Cannot reach embedding provider: {e}") from e
        if response.status_code >= 400:
            raise EmbeddingProviderError(response.status_code, response.text)
        data = response.json()
        return data.get("embedding", {}).get("values", [])


@dataclass
class OllamaEmbeddingBackend:
    base_url: str
    model: str
    timeout: float = 30.0
    transport: httpx.AsyncBaseTransport | None = None

    async def embed(self, text: str) -> list[float]:
        payload = {"model": self.model, "prompt": text}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.base_url}/api/embeddings", json=payload)
        except httpx.RequestError as e:
            raise EmbeddingProviderError(None, f"Cannot connect to Ollama at {self.base_url}: {e}") from e
        if response.status_code >= 400:
            raise EmbeddingProviderError(response.status_code, response.text)
        data = response.json()
        if "error" in data:
            raise EmbeddingProviderError(response.status_code, str(data["error"]))
        return data.get("embedding", [])


class HashEmbeddingBackend:
    """
    Deterministic lightweight embedding that hashes word tokens into a fixed-size,
    unit-length vector. Texts sharing words get a positive cosine similarity.
    Intended for tests and environments without a provider configured.
    """

    def __init__(self, dimension: int = 768) -> None:
        self.dimension = dimension

    async def embed(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for token in _TOKEN_RE.findall(text.lower()):
            digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
            vector[int.from_bytes(digest, "big") % self.dimension] += 1.0
        norm = math.sqrt(sum(value * value for value in vector))
        if norm == 0:
            # Empty input still needs a valid direction for cosine distance
            vector[0] = 1.0
            return vector
        return [value / norm for value in vector]


class EmbeddingClient:
    """
    Turns one passage or query into a vector, retrying rate-limited calls.

    A rate-limited call at ``attempt`` waits ``retry_base_seconds * 2**attempt``
    before trying again, until ``max_retries`` retries have been spent. Every
    other provider error propagates on the first failure.
    """

    def __init__(
        self,
        backend: EmbeddingBackend,
        dimension: int = 768,
        max_retries: int = 5,
        retry_base_seconds: float = 6.0,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.backend = backend
        self.dimension = dimension
        self.max_retries = max_retries
        self.retry_base_seconds = retry_base_seconds
        self._sleep = sleep

    async def embed(self, text: str, attempt: int = 0) -> list[float]:
        while True:
            try:
                vector = await self.backend.embed(text)
            except EmbeddingProviderError as e:
                if not e.is_rate_limit or attempt >= self.max_retries:
                    logger.error(
                        f"Embedding failed (attempt={attempt}, status={e.status}, text_length={len(text)}): {e.body}"
                    )
                    raise
                wait = self.retry_base_seconds * (2**attempt)
                logger.warning(
                    f"Embedding rate limited, retrying after {wait:.1f}s (attempt {attempt + 1}/{self.max_retries})"
                )
                await self._sleep(wait)
                attempt += 1
                continue
            return self._validate(vector)

    def _validate(self, vector: list[float]) -> list[float]:
        if len(vector) != self.dimension:
            raise MalformedEmbedding(
                f"Embedding has {len(vector)} dimensions, expected {self.dimension}"
            )
        return [float(value) for value in vector]


def create_embedding_backend(settings: AppConfig) -> EmbeddingBackend:
    if settings.embedding_backend == "hash":
        return HashEmbeddingBackend(dimension=settings.embedding_dimension)
    if settings.embedding_backend == "ollama":
        return OllamaEmbeddingBackend(
            base_url=settings.ollama_base_url,
            model=settings.ollama_embedding_model,
            timeout=settings.embedding_timeout_seconds,
        )
    if not settings.gemini_api_key:
        raise ValueError("Set NOTEBOOKRAG_GEMINI_API_KEY for the gemini embedding backend")
    return GeminiEmbeddingBackend(
        api_key=settings.gemini_api_key,
        model=settings.embedding_model,
        base_url=settings.gemini_base_url,
        timeout=settings.embedding_timeout_seconds,
    )


def create_embedding_client(settings: AppConfig, sleep: SleepFn = asyncio.sleep) -> EmbeddingClient:
    return EmbeddingClient(
        create_embedding_backend(settings),
        dimension=settings.embedding_dimension,
        max_retries=settings.embedding_max_retries,
        retry_base_seconds=settings.embedding_retry_base_seconds,
        sleep=sleep,
    )
