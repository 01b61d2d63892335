"""Scripted stand-ins for the LLM, search and social adapters."""

import json
from typing import Callable, Optional, Union

from app.services.llm_service import ChatCompletion, ChatMessage, ModelProvider
from app.services.search_service import SearchHit
from app.services.social_service import SocialPost


Reply = Union[str, Exception]


class FakeLLM:
    """
    Scripted stand-in for LLMService.

    `reply` is a string, an exception to raise, or a callable taking the
    message list and returning either.
    """

    def __init__(
        self,
        reply: Union[Reply, Callable[[list[ChatMessage]], Reply]] = "",
        embed_fn: Optional[Callable[[str], list[float]]] = None,
    ):
        self.reply = reply
        self.embed_fn = embed_fn
        self.calls: list[list[ChatMessage]] = []

    @property
    def available(self) -> bool:
        return True

    @property
    def embeddings_available(self) -> bool:
        return self.embed_fn is not None

    async def chat(self, messages, task_type=None, temperature=0.7, max_tokens=None, json_mode=False, fallback=True):
        self.calls.append(messages)
        reply = self.reply(messages) if callable(self.reply) else self.reply
        if isinstance(reply, Exception):
            raise reply
        return ChatCompletion(
            content=reply,
            model="fake-model",
            provider=ModelProvider.OPENAI,
            input_tokens=0,
            output_tokens=0,
            total_tokens=0,
            cost_usd=0.0,
            latency_ms=0.0,
        )

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_fn(text) for text in texts]

    def prompt_text(self, index: int = -1) -> str:
        """All message contents of one recorded call, joined."""
        return "\n".join(m.content for m in self.calls[index])


class FakeSearch:
    configured = True

    def __init__(
        self,
        hits: Optional[list[SearchHit]] = None,
        totals: Optional[Callable[[str, Optional[str]], int]] = None,
        error: Optional[Exception] = None,
    ):
        self.hits = hits or []
        self.totals = totals or (lambda query, window: 0)
        self.error = error
        self.queries: list[str] = []

    async def search(self, query: str, num: int = 10, date_restrict: Optional[str] = None) -> list[SearchHit]:
        self.queries.append(query)
        if self.error:
            raise self.error
        return self.hits[:num]

    async def total_results(self, query: str, date_restrict: Optional[str] = None) -> int:
        self.queries.append(query)
        if self.error:
            raise self.error
        return self.totals(query, date_restrict)


class FakeSocial:
    configured = True

    def __init__(self, texts: Optional[list[str]] = None, error: Optional[Exception] = None):
        self.texts = texts or []
        self.error = error

    async def recent_posts(self, query: str, limit: int = 10) -> list[SocialPost]:
        if self.error:
            raise self.error
        return [SocialPost(id=str(i), text=text) for i, text in enumerate(self.texts)][:limit]


def json_reply(payload: dict) -> str:
    return json.dumps(payload)

