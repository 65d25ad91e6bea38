"""Embeddings providers: turn a piece of text into a float vector."""
from __future__ import annotations

import os
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from archive.errors import UpstreamError

from .http import DEFAULT_TIMEOUT, MAX_RETRIES, post_json


@runtime_checkable
class EmbeddingsClient(Protocol):
    def get_embeddings(self, text: str) -> List[float]: ...


def _as_vector(raw: Any, source: str) -> List[float]:
    if not isinstance(raw, list) or not raw or not all(
        isinstance(x, (int, float)) and not isinstance(x, bool) for x in raw
    ):
        raise UpstreamError(f"{source} returned no usable embedding")
    return [float(x) for x in raw]


class OpenAIEmbeddingsClient:
    """OpenAI-compatible ``/embeddings`` endpoint."""

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        *,
        base_url: str = "https://api.openai.com/v1",
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
    ) -> None:
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries

    def _key(self) -> str:
        key = self._api_key or os.environ.get("OPENAI_API_KEY")
        if not key:
            raise UpstreamError("Missing OPENAI_API_KEY environment variable")
        return key

    def get_embeddings(self, text: str) -> List[float]:
        data = post_json(
            f"{self.base_url}/embeddings",
            {"model": self.model, "input": text},
            headers={"Authorization": f"Bearer {self._key()}"},
            timeout=self.timeout,
            max_retries=self.max_retries,
        )
        try:
            raw = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as e:
            raise UpstreamError(f"unexpected embeddings response: {e}") from e
        return _as_vector(raw, "OpenAI")


class OllamaEmbeddingsClient:
    """Local Ollama ``/api/embeddings`` endpoint."""

    def __init__(
        self,
        model: str = "nomic-embed-text",
        *,
        base_url: str = "http://localhost:11434",
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
    ) -> None:
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries

    def get_embeddings(self, text: str) -> List[float]:
        data = post_json(
            f"{self.base_url}/api/embeddings",
            {"model": self.model, "prompt": text},
            timeout=self.timeout,
            max_retries=self.max_retries,
        )
        raw = data.get("embedding") if isinstance(data, dict) else None
        return _as_vector(raw, "Ollama")


def create_embeddings_client(cfg: Dict[str, Any]) -> EmbeddingsClient:
    """Create an embeddings client from the ``embeddings`` config section."""
    e_cfg = (cfg or {}).get("embeddings", {}) or {}
    provider = str(e_cfg.get("provider", "openai")).lower()
    params: Dict[str, Any] = {
        "model": e_cfg.get("model"),
        "base_url": e_cfg.get("base_url"),
        "timeout": e_cfg.get("timeout"),
        "max_retries": e_cfg.get("max_retries"),
    }
    params = {k: v for k, v in params.items() if v is not None}
    if provider == "openai":
        return OpenAIEmbeddingsClient(**params)
    if provider == "ollama":
        return OllamaEmbeddingsClient(**params)
    raise ValueError(f"Unknown embeddings provider: {provider!r}")
