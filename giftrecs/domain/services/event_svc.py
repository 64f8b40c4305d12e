# giftrecs/domain/services/event_svc.py

from __future__ import annotations
from typing import Any, Dict, List, Optional
import logging

from giftrecs.domain.models.event import EventAction, RecommendationEvent
from giftrecs.domain.repositories.event_repo import EventRepo
from giftrecs.domain.repositories.product_repo import ProductRepo
from giftrecs.domain.services.session_svc import SessionProfileManager
from giftrecs.utils.tasks import BackgroundRunner

logger = logging.getLogger(__name__)

# actions that pull the session embedding toward the product
POSITIVE_ACTIONS = {EventAction.LIKE.value, EventAction.SAVE.value}


class EventRecorder:
    """
    Fire-and-forget recommendation event log.

    Public methods only schedule work on the background runner and return
    immediately; the scheduled coroutines log and swallow their own errors.
    """

    def __init__(
        self,
        repo: EventRepo,
        runner: BackgroundRunner,
        *,
        profiles: Optional[SessionProfileManager] = None,
        product_repo: Optional[ProductRepo] = None,
    ):
        self.repo = repo
        self.runner = runner
        self.profiles = profiles
        self.product_repo = product_repo

    # ---------- impressions ----------

    def log_impressions(self, session_id: str, user_id: Optional[str], product_ids: List[str]) -> None:
        if not product_ids:
            return
        self.runner.spawn(
            self._write_impressions(session_id, user_id, product_ids),
            name=f"impressions:{session_id}",
        )

    async def _write_impressions(self, session_id: str, user_id: Optional[str], product_ids: List[str]) -> None:
        events = [
            RecommendationEvent(session_id=session_id, user_id=user_id, product_id=pid, action=EventAction.IMPRESSION)
            for pid in product_ids
        ]
        try:
            n = await self.repo.insert_many(events)
            logger.debug(f"Logged {n} impressions for session={session_id}")
        except Exception as e:
            logger.error(f"Impression logging failed for session={session_id}: {e}")

    # ---------- client actions ----------

    def track(
        self,
        session_id: str,
        action: EventAction,
        *,
        product_id: Optional[str] = None,
        user_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        event = RecommendationEvent(
            session_id=session_id,
            user_id=user_id,
            product_id=product_id,
            action=action,
            metadata=metadata,
        )
        self.runner.spawn(self.record(event), name=f"event:{action.value}:{session_id}")

    async def record(self, event: RecommendationEvent) -> None:
        """Persist one event, then apply its session side effects."""
        try:
            await self.repo.insert_one(event)
            logger.info(f"Event {event.action} session={event.session_id} product={event.product_id}")
        except Exception as e:
            logger.error(f"Event logging failed ({event.action}) for session={event.session_id}: {e}")

        if not event.product_id or self.profiles is None:
            return

        if event.action == EventAction.DISLIKE:
            await self.profiles.append_excluded_ids(event.session_id, [event.product_id])
        elif event.action in POSITIVE_ACTIONS and self.product_repo is not None:
            try:
                vec = await self.product_repo.get_vector(event.product_id)
            except Exception as e:
                logger.warning(f"Product vector lookup failed for product={event.product_id}: {e}")
                return
            if vec:
                await self.profiles.nudge_embedding(event.session_id, vec)
