# giftrecs/domain/services/session_svc.py

from __future__ import annotations
from typing import Iterable, List, Optional
from datetime import datetime, timezone
import logging

from pydantic import ValidationError

from giftrecs.domain.models.session import SessionConstraints, SessionProfile
from giftrecs.domain.repositories.session_repo import SessionRepo
from giftrecs.domain.repositories.vector_cache_repo import VectorCacheRepo
from giftrecs.domain.services.constants import NUDGE_WEIGHT
from giftrecs.domain.services.embedding_svc import (
    get_or_create_query_embedding,
    truncate_preference_text,
)
from giftrecs.domain.services.llm_providers import EmbeddingProvider
from giftrecs.utils.cache import TTLCache

logger = logging.getLogger(__name__)


def blend_vectors(old: List[float], new: List[float], weight: float) -> List[float]:
    """(1 - w) * old + w * new. Empty or mismatched `old` adopts `new`."""
    if not old or len(old) != len(new):
        return list(new)
    return [(1.0 - weight) * o + weight * n for o, n in zip(old, new)]


class SessionProfileManager:
    """
    Builds, loads and updates per-session recommendation state.

    Every operation is best-effort: an embedding failure gives an empty
    embedding (heuristic-only ranking), a persistence failure is logged and
    the request goes on.
    """

    def __init__(
        self,
        repo: SessionRepo,
        embedder: EmbeddingProvider,
        *,
        embedding_model: str,
        max_chars: int = 1500,
        memo: Optional[TTLCache] = None,
        vector_cache: Optional[VectorCacheRepo] = None,
        vector_cache_ttl: int = 24 * 3600,
    ):
        self.repo = repo
        self.embedder = embedder
        self.embedding_model = embedding_model
        self.max_chars = max_chars
        self.memo = memo
        self.vector_cache = vector_cache
        self.vector_cache_ttl = vector_cache_ttl

    async def build(
        self,
        session_id: str,
        free_text: str,
        constraints: Optional[SessionConstraints] = None,
    ) -> SessionProfile:
        constraints = constraints or SessionConstraints()
        text = truncate_preference_text(free_text, self.max_chars)

        try:
            embedding = await get_or_create_query_embedding(
                text,
                self.embedder,
                model=self.embedding_model,
                memo=self.memo,
                vector_cache=self.vector_cache,
                vector_cache_ttl=self.vector_cache_ttl,
            )
        except Exception as e:
            logger.warning(f"Embedding failed for session={session_id}, ranking will be heuristic-only: {e}")
            embedding = []

        try:
            doc = await self.repo.upsert(session_id, embedding, constraints)
            if doc:
                profile = SessionProfile.model_validate(doc)
                logger.info(
                    f"Session profile upserted session={session_id} embedding_dim={len(profile.embedding)} "
                    f"seen={len(profile.constraints.seen_ids)} excluded={len(profile.constraints.excluded_ids)}"
                )
                return await self._start_listing(profile)
        except Exception as e:
            logger.error(f"Session upsert failed for session={session_id}: {e}")

        now = datetime.now(timezone.utc)
        profile = SessionProfile(
            session_id=session_id,
            embedding=embedding,
            constraints=constraints.model_copy(deep=True),
            created_at=now,
            updated_at=now,
        )
        return await self._start_listing(profile)

    async def _start_listing(self, profile: SessionProfile) -> SessionProfile:
        """
        Snapshot seen + excluded ids as the exclusions of the listing that
        starts with this build. Pages > 0 rank against the snapshot.
        """
        c = profile.constraints
        c.listing_excluded_ids = list(dict.fromkeys(c.seen_ids + c.excluded_ids))
        try:
            await self.repo.start_listing(profile.session_id, c.listing_excluded_ids)
        except Exception as e:
            logger.error(f"Listing snapshot failed for session={profile.session_id}: {e}")
        return profile

    async def load(self, session_id: str) -> Optional[SessionProfile]:
        """The stored profile, or None when missing or unreadable."""
        try:
            doc = await self.repo.find(session_id)
        except Exception as e:
            logger.error(f"Session load failed for session={session_id}: {e}")
            return None
        if not doc:
            logger.debug(f"Session not found: {session_id}")
            return None
        try:
            return SessionProfile.model_validate(doc)
        except ValidationError as e:
            logger.error(f"Stored session {session_id} is malformed: {e}")
            return None

    async def append_seen_ids(self, session_id: str, ids: Iterable[str]) -> None:
        await self._append(session_id, "seen_ids", ids)

    async def append_excluded_ids(self, session_id: str, ids: Iterable[str]) -> None:
        await self._append(session_id, "excluded_ids", ids)

    async def nudge_embedding(
        self,
        session_id: str,
        product_vector: List[float],
        weight: float = NUDGE_WEIGHT,
    ) -> None:
        """Move the session embedding toward a liked/saved product vector."""
        if not product_vector:
            return
        profile = await self.load(session_id)
        if profile is None:
            logger.debug(f"Nudge skipped, unknown session={session_id}")
            return
        try:
            await self.repo.set_embedding(session_id, blend_vectors(profile.embedding, product_vector, weight))
            logger.debug(f"Session embedding nudged session={session_id} weight={weight}")
        except Exception as e:
            logger.error(f"Embedding nudge failed for session={session_id}: {e}")

    async def _append(self, session_id: str, field: str, ids: Iterable[str]) -> None:
        unique = list(dict.fromkeys(i for i in ids if i))  # preserve order, dedupe
        if not unique:
            return
        try:
            await self.repo.add_ids(session_id, field, unique)
            logger.debug(f"Appended {len(unique)} ids to {field} for session={session_id}")
        except Exception as e:
            logger.error(f"Appending {field} failed for session={session_id}: {e}")
