from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import httpx

from ..config import AppConfig


class SummaryModel(Protocol):
    async def complete_json(self, prompt: str, max_tokens: int) -> str:
        """Return the model's raw reply, which should be a JSON document."""
        ...


@dataclass
class OllamaSummaryModel:
    """Asks a local Ollama model for a JSON-formatted completion."""

    base_url: str
    model: str
    timeout: float = 60.0
    transport: httpx.AsyncBaseTransport | None = None

    async def complete_json(self, prompt: str, max_tokens: int) -> str:
        request_body = {
            "model": self.model,
            "prompt": prompt,
            "format": "json",
            "stream": False,
            "options": {"num_predict": max_tokens, "temperature": 0.2},
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.base_url}/api/generate", json=request_body)
        except httpx.RequestError as e:
            raise ValueError(f"Summary model unreachable at {self.base_url}: {e}") from e

        if response.status_code >= 400:
            raise ValueError(f"Summary model returned {response.status_code}: {response.text[:200]}")
        body = response.json()
        if body.get("error"):
            raise ValueError(f"Summary model error: {body['error']}")
        return str(body.get("response") or "").strip()


def create_summary_model(settings: AppConfig) -> SummaryModel | None:
    """The configured summary model, or None when summaries are template-only."""
    if settings.llm_provider == "ollama":
        return OllamaSummaryModel(base_url=settings.ollama_base_url, model=settings.ollama_model)
    return None
