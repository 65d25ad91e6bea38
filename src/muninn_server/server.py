"""FastAPI application exposing the message archive over HTTP."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from archive import ArchiveError, FsMessageRepo, Message, MessageRepo, NotFound, StubMessageRepo
from clients.chat import ChatClient, create_chat_client
from clients.embeddings import EmbeddingsClient, create_embeddings_client

from .attributes import AttributeStore
from .config import configure_logging, load_config
from .service import DEFAULT_SYSTEM_PROMPT, ChatService

logger = logging.getLogger(__name__)


# -----------------------------
# Pydantic request/response
# -----------------------------
class ChatRequest(BaseModel):
    role: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    hash: str = Field(..., min_length=1)
    user: Optional[str] = Field(default=None, description="Archive owner; server default when omitted.")


class ChatResponse(BaseModel):
    role: str
    content: str
    hash: str

    @classmethod
    def from_model(cls, m: Message) -> "ChatResponse":
        return cls(role=m.role, content=m.content, hash=m.hash)


class SearchRequest(BaseModel):
    content: str = Field(..., min_length=1)
    user: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1)


class SearchResponse(BaseModel):
    role: str
    content: str
    hash: str
    ranking: float


class ReplyRequest(BaseModel):
    content: str = Field(..., min_length=1)
    hash: str = Field(..., min_length=1)
    user: Optional[str] = None


class AttributeRequest(BaseModel):
    attribute: str = Field(..., min_length=1)
    value: str


class AttributeResponse(BaseModel):
    attribute: str
    value: str


# -----------------------------
# Wiring
# -----------------------------
def make_repo(cfg: Dict[str, Any]) -> MessageRepo:
    a_cfg = cfg.get("archive", {}) or {}
    backend = str(a_cfg.get("backend", "fs")).lower()
    if backend == "stub":
        return StubMessageRepo()
    if backend == "fs":
        return FsMessageRepo(a_cfg.get("root"))
    raise ValueError(f"Unknown archive backend: {backend!r}")


def _error_response(exc: ArchiveError) -> JSONResponse:
    if isinstance(exc, NotFound):
        return JSONResponse(status_code=404, content={"detail": exc.kind, "error": str(exc)})
    logger.error("Request failed with %s: %s", exc.kind, exc)
    return JSONResponse(status_code=500, content={"detail": exc.kind, "error": str(exc)})


# -----------------------------
# App factory
# -----------------------------
def create_app(
    config_path: Optional[str] = None,
    repo: Optional[MessageRepo] = None,
    embeddings: Optional[EmbeddingsClient] = None,
    chat: Optional[ChatClient] = None,
    attributes: Optional[AttributeStore] = None,
) -> FastAPI:
    cfg = load_config(config_path)
    configure_logging(cfg.get("logging", {}).get("level", "INFO"))

    server_cfg = cfg.get("server", {})
    reply_cfg = cfg.get("reply", {})
    default_user = str(server_cfg.get("default_user") or "my_user")

    repo = repo if repo is not None else make_repo(cfg)
    service = ChatService(
        repo,
        embeddings or create_embeddings_client(cfg),
        chat or create_chat_client(cfg),
        workers=int(cfg.get("archive", {}).get("workers", 4)),
        context_messages=int(reply_cfg.get("context_messages", 5)),
        system_prompt=str(reply_cfg.get("system_prompt") or DEFAULT_SYSTEM_PROMPT),
    )
    attributes = attributes or AttributeStore(cfg.get("archive", {}).get("root"))

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        service.close()

    app = FastAPI(title="Muninn", version="0.1.0", lifespan=lifespan)
    app.state.service = service
    app.add_middleware(
        CORSMiddleware,
        allow_origins=server_cfg.get("cors_origins") or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ArchiveError)
    async def archive_error(_: Request, exc: ArchiveError) -> JSONResponse:
        return _error_response(exc)

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {
            "ok": True,
            "archive": type(repo).__name__,
            "archive_root": str(getattr(repo, "root", "")) or None,
        }

    @app.post("/api/v1/chat", response_model=ChatResponse)
    async def save_chat(req: ChatRequest) -> ChatResponse:
        stored = await service.save_chat(req.user or default_user, req.role, req.content, req.hash)
        return ChatResponse.from_model(stored)

    @app.post("/api/v1/chat/search", response_model=List[SearchResponse])
    async def search_chat(req: SearchRequest) -> List[SearchResponse]:
        hits = await service.search_chat(req.user or default_user, req.content, req.limit)
        return [
            SearchResponse(role=h.message.role, content=h.message.content, hash=h.message.hash, ranking=h.ranking)
            for h in hits
        ]

    @app.get("/api/v1/chat/{key}", response_model=ChatResponse)
    async def get_chat(key: str, user: Optional[str] = None) -> ChatResponse:
        found = await service.get_chat(user or default_user, key)
        return ChatResponse.from_model(found)

    @app.post("/api/v1/reply", response_model=ChatResponse)
    async def reply(req: ReplyRequest) -> ChatResponse:
        answer = await service.reply(req.user or default_user, req.content, req.hash)
        return ChatResponse.from_model(answer)

    @app.post("/api/v1/attribute/{username}", response_model=AttributeResponse)
    def save_attribute(username: str, req: AttributeRequest) -> AttributeResponse:
        saved = attributes.save(username, req.attribute, req.value)
        return AttributeResponse(attribute=saved.attribute, value=saved.value)

    @app.get("/api/v1/attribute/{username}/{attribute}", response_model=AttributeResponse)
    def get_attribute(username: str, attribute: str) -> AttributeResponse:
        found = attributes.get(username, attribute)
        return AttributeResponse(attribute=found.attribute, value=found.value)

    return app
