# giftrecs/domain/services/rerank_svc.py

from __future__ import annotations
from typing import Any, List, Optional, Protocol, Set
import json
import re
import logging

from pydantic import BaseModel, ValidationError

from giftrecs.core.config import Settings
from giftrecs.domain.models.product import RankedProduct
from giftrecs.domain.models.session import SessionProfile
from giftrecs.domain.services.constants import RERANK_MAX_TOP_N
from giftrecs.domain.services.llm_providers import ChatProvider, OpenAIChatProvider
from giftrecs.domain.services.prompts import SYSTEM_PROMPT, rerank_task
from giftrecs.domain.services.ranking_svc import reassign_ranks

logger = logging.getLogger(__name__)

# =============================================================================
#                               VALIDATION SCHEMA
# =============================================================================

class RerankResponse(BaseModel):
    """
    Expected model output: {"order": ["<product_id>", ...]}
    Items are left untyped so stray non-string ids can be skipped one by one.
    """
    order: List[Any]

# Regex to strip code fences (``` or ```json) from LLM output
_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)

def _strip_fences(s: str) -> str:
    return _CODE_FENCE_RE.sub("", s).strip()

def parse_order(text: str) -> List[str]:
    """
    Parse the model reply into an ordered, deduplicated list of string ids.
    Raises ValueError on empty output, bad JSON or a non-array `order`.
    """
    raw = _strip_fences(text or "")
    if not raw:
        raise ValueError("Empty LLM output")
    try:
        model = RerankResponse.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as e:
        raise ValueError(f"Invalid LLM JSON: {e}") from e

    seen: Set[str] = set()
    ids: List[str] = []
    for pid in model.order:
        if isinstance(pid, str) and pid not in seen:
            seen.add(pid)
            ids.append(pid)
    return ids

# =============================================================================
#                               STRATEGIES
# =============================================================================

class Reranker(Protocol):
    async def rerank(
        self, ranked: List[RankedProduct], session: SessionProfile, top_n: Optional[int] = None
    ) -> List[RankedProduct]: ...


class NoopRerank:
    """Keeps the heuristic order."""

    async def rerank(
        self, ranked: List[RankedProduct], session: SessionProfile, top_n: Optional[int] = None
    ) -> List[RankedProduct]:
        return ranked


class ModelRerank:
    """
    Reorders the head of the ranked list with a chat model.

    Only the first min(top_n, 30, len) items are sent; the tail is appended
    untouched. Any provider or parsing failure returns the input as-is.
    """

    def __init__(
        self,
        chat: ChatProvider,
        *,
        default_top_n: int = 20,
        temperature: float = 0.2,
        max_tokens: int = 400,
    ):
        self.chat = chat
        self.default_top_n = default_top_n
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def rerank(
        self, ranked: List[RankedProduct], session: SessionProfile, top_n: Optional[int] = None
    ) -> List[RankedProduct]:
        if not ranked:
            return ranked

        slice_count = min(top_n or self.default_top_n, RERANK_MAX_TOP_N, len(ranked))
        head, tail = ranked[:slice_count], ranked[slice_count:]
        user_prompt = rerank_task(head, session.constraints.interests)
        logger.debug(f"Rerank prompt preview: {user_prompt[:1000]}{'…' if len(user_prompt) > 1000 else ''}")

        try:
            content = await self.chat.complete(
                SYSTEM_PROMPT,
                user_prompt,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
            order = parse_order(content)
        except Exception as e:
            # Fail-open: keep heuristic order
            logger.warning(f"LLM rerank failed for session={session.session_id}, keeping heuristic order: {e}")
            return ranked

        by_id = {p.product_id: p for p in head}
        reordered: List[RankedProduct] = [by_id[pid] for pid in order if pid in by_id]
        placed = {p.product_id for p in reordered}
        dropped = [p for p in head if p.product_id not in placed]
        logger.info(
            f"LLM rerank applied for session={session.session_id}: slice={len(head)} "
            f"kept={len(reordered)} dropped_by_model={len(dropped)}"
        )
        return reassign_ranks(reordered + dropped + tail)


def build_reranker(settings: Settings, chat: Optional[ChatProvider] = None) -> Reranker:
    if not settings.RECS_LLM_RERANK_ENABLED:
        return NoopRerank()
    if chat is None:
        chat = OpenAIChatProvider(settings)
    return ModelRerank(
        chat,
        default_top_n=settings.recs_rerank_top_n,
        temperature=settings.recs_rerank_temperature,
        max_tokens=settings.recs_rerank_max_tokens,
    )
