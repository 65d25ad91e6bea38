from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from archive import UpstreamError
from clients import http as http_mod
from clients.chat import (
    ChatMessage,
    ContextBuilder,
    OllamaChatClient,
    OpenAIChatClient,
    Role,
    create_chat_client,
)
from clients.embeddings import (
    OllamaEmbeddingsClient,
    OpenAIEmbeddingsClient,
    create_embeddings_client,
)


class DummyResp:
    def __init__(self, payload, status_code=200, url="https://example.test/x"):
        self._payload = payload
        self.status_code = status_code
        self._request = httpx.Request("POST", url)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise httpx.HTTPStatusError(
                "bad status",
                request=self._request,
                response=httpx.Response(self.status_code, request=self._request),
            )

    def json(self):
        return self._payload


@pytest.fixture(autouse=True)
def no_sleep():
    with patch.object(http_mod.time, "sleep") as sleeper:
        yield sleeper


def test_openai_embeddings_parses_vector():
    with patch("httpx.Client.post", return_value=DummyResp({"data": [{"embedding": [0.1, 0.2]}]})) as post:
        vec = OpenAIEmbeddingsClient(api_key="k").get_embeddings("hello")
    assert vec == [0.1, 0.2]
    args, kwargs = post.call_args
    assert args[0].endswith("/embeddings")
    assert kwargs["json"] == {"model": "text-embedding-3-small", "input": "hello"}


def test_openai_embeddings_requires_key(clean_env):
    with pytest.raises(UpstreamError):
        OpenAIEmbeddingsClient().get_embeddings("hello")


def test_ollama_embeddings_parses_vector():
    with patch("httpx.Client.post", return_value=DummyResp({"embedding": [1, 2, 3]})):
        assert OllamaEmbeddingsClient().get_embeddings("x") == [1.0, 2.0, 3.0]


def test_empty_embedding_is_upstream_error():
    with patch("httpx.Client.post", return_value=DummyResp({"embedding": []})):
        with pytest.raises(UpstreamError):
            OllamaEmbeddingsClient().get_embeddings("x")


def test_boolean_embedding_is_upstream_error():
    with patch("httpx.Client.post", return_value=DummyResp({"embedding": [True, False]})):
        with pytest.raises(UpstreamError):
            OllamaEmbeddingsClient().get_embeddings("x")


def test_transport_errors_are_retried_then_raised(no_sleep):
    req = httpx.Request("POST", "http://localhost:11434/api/embeddings")

    def boom(*args, **kwargs):
        raise httpx.ConnectError("boom", request=req)

    with patch("httpx.Client.post", side_effect=boom) as post:
        with pytest.raises(UpstreamError):
            OllamaEmbeddingsClient(max_retries=3).get_embeddings("x")
    assert post.call_count == 3
    assert no_sleep.call_count == 2


def test_server_error_then_success():
    responses = [DummyResp({}, status_code=503), DummyResp({"embedding": [0.5]})]
    with patch("httpx.Client.post", side_effect=responses) as post:
        assert OllamaEmbeddingsClient().get_embeddings("x") == [0.5]
    assert post.call_count == 2


def test_client_error_is_not_retried():
    with patch("httpx.Client.post", return_value=DummyResp({}, status_code=401)) as post:
        with pytest.raises(UpstreamError):
            OpenAIEmbeddingsClient(api_key="bad").get_embeddings("x")
    assert post.call_count == 1


def test_context_builder_trims_and_orders():
    ctx = (
        ContextBuilder()
        .add_message(Role.SYSTEM, "  be brief ")
        .add_message(Role.USER, "hi\n")
        .build()
    )
    assert ctx == [ChatMessage("system", "be brief"), ChatMessage("user", "hi")]
    assert str(ctx[1]) == "user: hi"


def test_openai_chat_complete():
    payload = {"choices": [{"message": {"role": "assistant", "content": "hello!"}}]}
    with patch("httpx.Client.post", return_value=DummyResp(payload)) as post:
        out = OpenAIChatClient(api_key="k").complete([ChatMessage("user", "hi")])
    assert out == "hello!"
    assert post.call_args.kwargs["json"]["messages"] == [{"role": "user", "content": "hi"}]


def test_ollama_chat_complete_and_bad_payload():
    with patch("httpx.Client.post", return_value=DummyResp({"message": {"content": "yo"}})) as post:
        assert OllamaChatClient().complete([ChatMessage("user", "hi")]) == "yo"
    assert post.call_args.kwargs["json"]["stream"] is False

    with patch("httpx.Client.post", return_value=DummyResp({"error": "model not found"})):
        with pytest.raises(UpstreamError):
            OllamaChatClient().complete([ChatMessage("user", "hi")])


def test_factories_follow_config():
    cfg = {
        "embeddings": {"provider": "ollama", "model": "m", "base_url": "http://h:1/"},
        "chat": {"provider": "ollama", "timeout": 5},
    }
    emb = create_embeddings_client(cfg)
    assert isinstance(emb, OllamaEmbeddingsClient)
    assert emb.model == "m" and emb.base_url == "http://h:1"
    chat = create_chat_client(cfg)
    assert isinstance(chat, OllamaChatClient) and chat.timeout == 5

    assert isinstance(create_embeddings_client({}), OpenAIEmbeddingsClient)
    with pytest.raises(ValueError):
        create_chat_client({"chat": {"provider": "nope"}})
