"""Async façade over the archive: embeds text, stores turns, answers searches.

All archive calls block on the filesystem, so they run on a dedicated
thread pool; provider calls run on the loop's default executor.
"""
from __future__ import annotations

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, List, Optional, TypeVar

from archive import Message, MessageRepo, top_k
from archive.similarity import Scored
from clients.chat import ChatClient, ContextBuilder, Role
from clients.embeddings import EmbeddingsClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant. Earlier messages from this user are included for context."


@dataclass
class SearchHit:
    message: Message
    ranking: float


class ChatService:
    def __init__(
        self,
        repo: MessageRepo,
        embeddings: EmbeddingsClient,
        chat: Optional[ChatClient] = None,
        *,
        workers: int = 4,
        context_messages: int = 5,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.repo = repo
        self.embeddings = embeddings
        self.chat = chat
        self.context_messages = context_messages
        self.system_prompt = system_prompt
        self._today = today
        self._executor = ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix="archive")

    async def _archive(self, fn: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(fn, *args))

    async def _embed(self, text: str) -> List[float]:
        return await asyncio.to_thread(self.embeddings.get_embeddings, text)

    # ----------------- inbound operations -----------------
    async def save_chat(self, user: str, role: str, content: str, key: str) -> Message:
        """Embed content and store it under today's date. No embedding, no save."""
        vector = await self._embed(content)
        message = Message(role=role, content=content, hash=key, embedding=tuple(vector))
        return await self._archive(self.repo.save, self._today(), user, message)

    async def get_chat(self, user: str, key: str) -> Message:
        return await self._archive(self.repo.get, user, key)

    async def search_chat(self, user: str, query: str, limit: Optional[int] = None) -> List[SearchHit]:
        """Rank the user's messages against query, best first."""
        vector = await self._embed(query)
        found: List[Scored] = await self._archive(self.repo.search, user, vector)
        return [SearchHit(message=m, ranking=score) for score, m in top_k(found, limit)]

    async def reply(self, user: str, content: str, key: str) -> Message:
        """Store the user's turn, answer it with recalled context, store the answer."""
        if self.chat is None:
            raise RuntimeError("ChatService was created without a chat client")

        turn = await self.save_chat(user, Role.USER.value, content, key)
        found = await self._archive(self.repo.search, user, list(turn.embedding))
        context = [m for _, m in top_k(found) if m.hash != turn.hash][: self.context_messages]

        builder = ContextBuilder().add_message(Role.SYSTEM, self.system_prompt)
        for m in reversed(context):
            builder.add_message(Role.ASSISTANT if m.role == Role.ASSISTANT.value else Role.USER, m.content)
        builder.add_message(Role.USER, content)

        logger.debug("Replying to %s for %s with %d context messages", key, user, len(context))
        text = await asyncio.to_thread(self.chat.complete, builder.build())
        return await self.save_chat(user, Role.ASSISTANT.value, text, f"{key}-reply")

    def close(self) -> None:
        self._executor.shutdown(wait=True)
