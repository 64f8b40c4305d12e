# giftrecs/api/v1/routers/recommendations.py
from fastapi import APIRouter, Depends
import time
import uuid
import logging

from giftrecs.api.deps import enforce_rate_limit, recommendation_pipeline, session_manager
from giftrecs.api.v1.schemas.recs import (
    RecommendationRequest,
    RecommendationResponse,
    RecommendedProductOut,
)
from giftrecs.core.config import Settings, get_settings
from giftrecs.domain.models.session import SessionConstraints
from giftrecs.domain.services.pipeline_svc import RecommendationPipeline
from giftrecs.domain.services.session_svc import SessionProfileManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recommendations"])


@router.post(
    "/recommendations",
    response_model=RecommendationResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
async def recommend_gifts(
    body: RecommendationRequest,
    profiles: SessionProfileManager = Depends(session_manager),
    pipeline: RecommendationPipeline = Depends(recommendation_pipeline),
    settings: Settings = Depends(get_settings),
):
    """
    Gift recommendations for a shopper session.
    Page 0 (or an unknown session) (re)builds the session profile from the
    form; later pages reuse the stored profile so seen ids carry over.
    """
    session_id = body.session_id or f"session-{uuid.uuid4().hex}"
    page_size = body.page_size or settings.recs_default_page_size
    logger.info(
        "Request: recommendations session_id=%s, page=%s, page_size=%s, interests=%s",
        session_id, body.page, page_size, len(body.form.interests),
    )
    start_time = time.perf_counter()

    session = await profiles.load(session_id) if body.page > 0 else None
    if session is None:
        session = await profiles.build(
            session_id,
            body.form.preference_text(),
            SessionConstraints(
                interests=body.form.interests,
                occasion=body.form.occasion,
                relationship=body.form.relationship,
                min_price=body.form.min_price,
                max_price=body.form.max_price,
            ),
        )

    res = await pipeline.get_recommendations(
        session,
        page=body.page,
        page_size=min(page_size, settings.recs_max_page_size),
        country=body.country,
        user_id=body.user_id,
    )

    logger.info(
        "Response: recommendations session_id=%s, count=%s, has_more=%s, elapsed_time=%.4fs",
        session_id, len(res.products), res.has_more, time.perf_counter() - start_time,
    )
    return RecommendationResponse(
        session_id=session_id,
        page=res.page,
        has_more=res.has_more,
        recommendations=[RecommendedProductOut.from_ranked(p) for p in res.products],
    )
