"""Embedding and text-generation collaborators.

The engine only depends on the :class:`Embedder` and :class:`Generator`
protocols. :class:`OpenAIBackend` implements both against an
OpenAI-compatible REST API, routing every call through the shared
:class:`~inlinks.engine.http.Fetcher` so model calls get the same
timeout and retry policy as document fetches.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Protocol, Sequence

from .config import EngineConfig
from .http import Fetcher

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class Embedder(Protocol):
    async def embed(self, text: str) -> List[float]:
        ...

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        ...


class Generator(Protocol):
    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        ...


class BackendError(RuntimeError):
    """Raised when the model API answers with an unusable payload."""


class OpenAIBackend:
    """Chat completion and embedding client for OpenAI-compatible endpoints."""

    def __init__(
        self,
        fetcher: Fetcher,
        *,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        chat_model: str = "gpt-4o-mini",
        embedding_model: str = "text-embedding-3-small",
        embedding_dimensions: int | None = 1536,
        timeout: float = 60.0,
        temperature: float = 0.0,
    ) -> None:
        self.fetcher = fetcher
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.chat_model = chat_model
        self.embedding_model = embedding_model
        self.embedding_dimensions = embedding_dimensions
        self.timeout = timeout
        self.temperature = temperature

    @classmethod
    def from_config(
        cls,
        fetcher: Fetcher,
        config: EngineConfig,
        *,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
    ) -> "OpenAIBackend":
        return cls(
            fetcher,
            api_key=api_key,
            base_url=base_url or DEFAULT_BASE_URL,
            chat_model=config.model("chat", "gpt-4o-mini"),
            embedding_model=config.model("embedding", "text-embedding-3-small"),
            embedding_dimensions=config.model("embedding_dimensions", 1536),
            timeout=float(config.get("model_timeout", 60.0)),
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        logger.debug("POST %s (model=%s)", path, payload.get("model"))
        data = await self.fetcher.request_json(
            "POST",
            f"{self.base_url}{path}",
            json=payload,
            headers=self._headers(),
            timeout=self.timeout,
        )
        if not isinstance(data, dict):
            raise BackendError(f"Unexpected response from {path}: {type(data).__name__}")
        return data

    async def embed(self, text: str) -> List[float]:
        vectors = await self.embed_batch([text])
        if not vectors:
            raise BackendError("Embedding generation failed.")
        return vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        payload: Dict[str, Any] = {"model": self.embedding_model, "input": list(texts)}
        if self.embedding_dimensions:
            payload["dimensions"] = self.embedding_dimensions
        data = await self._post("/embeddings", payload)
        items = sorted(data.get("data", []), key=lambda item: item.get("index", 0))
        if len(items) != len(texts):
            raise BackendError(f"Expected {len(texts)} embeddings, got {len(items)}.")
        return [list(item["embedding"]) for item in items]

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        payload = {
            "model": self.chat_model,
            "temperature": self.temperature,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        data = await self._post("/chat/completions", payload)
        choices = data.get("choices") or []
        if not choices:
            raise BackendError("Chat completion returned no choices.")
        content = (choices[0].get("message") or {}).get("content")
        return content if isinstance(content, str) else ""
