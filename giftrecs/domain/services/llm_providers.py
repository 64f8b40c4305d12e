# giftrecs/domain/services/llm_providers.py

from __future__ import annotations
from typing import List, Protocol
import logging
from time import monotonic as _now

from openai import AsyncOpenAI

from giftrecs.core.config import Settings

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    async def embed(self, text: str) -> List[float]: ...


class ChatProvider(Protocol):
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float,
        max_tokens: int,
    ) -> str: ...


class OpenAIEmbeddingProvider:
    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None):
        self.client = client or AsyncOpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.openai_timeout_s)
        self.model = settings.OPENAI_EMBEDDING_MODEL

    async def embed(self, text: str) -> List[float]:
        resp = await self.client.embeddings.create(model=self.model, input=text)
        return resp.data[0].embedding


class OpenAIChatProvider:
    """
    JSON-mode chat completion. Returns the raw message content; parsing and
    validation belong to the caller.
    """

    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None):
        self.client = client or AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        self.model = settings.OPENAI_RERANK_MODEL
        self.timeout_s = settings.openai_timeout_s

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float,
        max_tokens: int,
    ) -> str:
        t0 = _now()
        resp = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=self.timeout_s,
            response_format={"type": "json_object"},
        )
        dt = _now() - t0
        u = getattr(resp, "usage", None)
        logger.info(
            f"LLM call model={getattr(resp, 'model', self.model)} duration={dt:.3f}s "
            f"tokens(prompt={getattr(u, 'prompt_tokens', None)}, completion={getattr(u, 'completion_tokens', None)})"
        )
        return resp.choices[0].message.content or ""
