"""Chat-completion providers and a small helper for assembling the message list."""
from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from archive.errors import UpstreamError

from .http import DEFAULT_TIMEOUT, MAX_RETRIES, post_json


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"

    def __str__(self) -> str:
        return self.value


@dataclass
class ChatMessage:
    role: str
    content: str

    def __str__(self) -> str:
        return f"{self.role}: {self.content}"


class ContextBuilder:
    """Accumulate chat turns in order; text is trimmed on the way in."""

    def __init__(self) -> None:
        self._messages: List[ChatMessage] = []

    def add_message(self, role: Role, text: str) -> "ContextBuilder":
        self._messages.append(ChatMessage(role=str(role), content=text.strip()))
        return self

    def build(self) -> List[ChatMessage]:
        return list(self._messages)


@runtime_checkable
class ChatClient(Protocol):
    def complete(self, context: Sequence[ChatMessage]) -> str: ...


def _payload(model: str, context: Sequence[ChatMessage]) -> Dict[str, Any]:
    return {"model": model, "messages": [asdict(m) for m in context]}


class OpenAIChatClient:
    """OpenAI-compatible ``/chat/completions``."""

    def __init__(
        self,
        model: str = "gpt-4-turbo-preview",
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

    def complete(self, context: Sequence[ChatMessage]) -> str:
        key = self._api_key or os.environ.get("OPENAI_API_KEY")
        if not key:
            raise UpstreamError("Missing OPENAI_API_KEY environment variable")
        data = post_json(
            f"{self.base_url}/chat/completions",
            _payload(self.model, context),
            headers={"Authorization": f"Bearer {key}"},
            timeout=self.timeout,
            max_retries=self.max_retries,
        )
        try:
            return str(data["choices"][0]["message"]["content"])
        except (KeyError, IndexError, TypeError) as e:
            raise UpstreamError(f"unexpected chat completion response: {e}") from e


class OllamaChatClient:
    """Local Ollama ``/api/chat`` (non-streaming)."""

    def __init__(
        self,
        model: str = "gemma:2b",
        *,
        base_url: str = "http://localhost:11434",
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
    ) -> None:
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries

    def complete(self, context: Sequence[ChatMessage]) -> str:
        payload = _payload(self.model, context)
        payload["stream"] = False
        data = post_json(
            f"{self.base_url}/api/chat",
            payload,
            timeout=self.timeout,
            max_retries=self.max_retries,
        )
        try:
            return str(data["message"]["content"])
        except (KeyError, TypeError) as e:
            raise UpstreamError(f"unexpected Ollama response: {e}") from e


def create_chat_client(cfg: Dict[str, Any]) -> ChatClient:
    """Create a chat client from the ``chat`` config section."""
    c_cfg = (cfg or {}).get("chat", {}) or {}
    provider = str(c_cfg.get("provider", "openai")).lower()
    params: Dict[str, Any] = {
        "model": c_cfg.get("model"),
        "base_url": c_cfg.get("base_url"),
        "timeout": c_cfg.get("timeout"),
        "max_retries": c_cfg.get("max_retries"),
    }
    params = {k: v for k, v in params.items() if v is not None}
    if provider == "openai":
        return OpenAIChatClient(**params)
    if provider == "ollama":
        return OllamaChatClient(**params)
    raise ValueError(f"Unknown chat provider: {provider!r}")
