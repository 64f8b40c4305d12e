# giftrecs/api/v1/routers/events.py
from fastapi import APIRouter, Depends, HTTPException, status
import logging

from giftrecs.api.deps import event_recorder, session_manager
from giftrecs.api.v1.schemas.recs import EventIn
from giftrecs.domain.models.event import EventAction
from giftrecs.domain.services.event_svc import EventRecorder
from giftrecs.domain.services.session_svc import SessionProfileManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


@router.post("/events", status_code=status.HTTP_202_ACCEPTED)
async def track_event(
    body: EventIn,
    profiles: SessionProfileManager = Depends(session_manager),
    recorder: EventRecorder = Depends(event_recorder),
):
    """
    Client-reported CLICK / SAVE / DISLIKE / LIKE. The write happens in the
    background; a DISLIKE keeps the product out of later pages.
    """
    if await profiles.load(body.session_id) is None:
        raise HTTPException(status_code=404, detail="Unknown session.")

    recorder.track(
        body.session_id,
        EventAction(body.action),
        product_id=body.product_id,
        user_id=body.user_id,
        metadata=body.metadata,
    )
    logger.info(f"Accepted event {body.action} session={body.session_id} product={body.product_id}")
    return {"accepted": True}
