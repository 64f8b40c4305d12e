import logging
import time
from enum import Enum
from typing import List, Optional, Set, Tuple

from giftrecs.domain.models.product import CandidateProduct, RankedProduct, RecommendationPage
from giftrecs.domain.models.session import SessionConstraints, SessionProfile
from giftrecs.domain.services.event_svc import EventRecorder
from giftrecs.domain.services.ranking_svc import RankingOptions, apply_ranking
from giftrecs.domain.services.rerank_svc import NoopRerank, Reranker
from giftrecs.domain.services.retrieval import fetch_candidate_pools
from giftrecs.domain.services.session_svc import SessionProfileManager
from giftrecs.utils.tasks import BackgroundRunner

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    FETCHING_CANDIDATES = "FETCHING_CANDIDATES"
    RANKING = "RANKING"
    RERANKING = "RERANKING"
    PAGINATING = "PAGINATING"
    LOGGING = "LOGGING"
    DONE = "DONE"


def merge_pools(*pools: List[CandidateProduct]) -> List[CandidateProduct]:
    """Concatenate pools in order, first occurrence of an id wins."""
    seen = set()
    merged: List[CandidateProduct] = []
    for pool in pools:
        for p in pool:
            if p.product_id not in seen:
                seen.add(p.product_id)
                merged.append(p)
    return merged


def listing_exclusions(constraints: SessionConstraints) -> Tuple[Set[str], Set[str]]:
    """
    (seen, negative) ids to drop from the current listing.

    Ids hidden when the listing started stay hidden. Ids served by this
    listing keep their slots, so `page * page_size` still lines up with
    what earlier pages returned. A dislike recorded mid-listing drops the
    product only if this listing has not served it yet.
    """
    hidden = set(constraints.listing_excluded_ids)
    served_here = set(constraints.seen_ids) - hidden
    negative = hidden | (set(constraints.excluded_ids) - served_here)
    return hidden, negative


def paginate(ranked: List[RankedProduct], page: int, page_size: int) -> Tuple[List[RankedProduct], bool]:
    """Slice [page*size, page*size + size) and whether more items follow."""
    if page < 0 or page_size < 1:
        raise ValueError(f"invalid pagination page={page} page_size={page_size}")
    start = page * page_size
    items = ranked[start:start + page_size]
    return items, len(ranked) > start + len(items)


class RecommendationPipeline:
    """
    Per-request recommendation flow:

      FETCHING_CANDIDATES -> RANKING -> (RERANKING) -> PAGINATING -> LOGGING -> DONE

    Fetch and rerank failures degrade to their fallbacks inside their own
    stages; the only dead end is two empty pools, which is an empty page.
    Seen-id and impression writes are scheduled, never awaited.
    """

    def __init__(
        self,
        candidate_repo,
        profiles: SessionProfileManager,
        recorder: EventRecorder,
        runner: BackgroundRunner,
        *,
        reranker: Optional[Reranker] = None,
        ranking_options: Optional[RankingOptions] = None,
        pool_limit: int = 60,
    ):
        self.candidate_repo = candidate_repo
        self.profiles = profiles
        self.recorder = recorder
        self.runner = runner
        self.reranker = reranker or NoopRerank()
        self.ranking_options = ranking_options or RankingOptions()
        self.pool_limit = pool_limit

    def _enter(self, state: PipelineState, session_id: str) -> None:
        logger.debug(f"pipeline session={session_id} -> {state.value}")

    async def get_recommendations(
        self,
        session: SessionProfile,
        page: int = 0,
        page_size: int = 30,
        country: Optional[str] = None,
        *,
        user_id: Optional[str] = None,
    ) -> RecommendationPage:
        t0 = time.perf_counter()
        sid = session.session_id
        logger.info(f"Starting recommendation pipeline session={sid} page={page} page_size={page_size} country={country}")

        # ---- 1) Candidates (vendor + affiliate, concurrently) -------------
        self._enter(PipelineState.FETCHING_CANDIDATES, sid)
        vendor, affiliate = await fetch_candidate_pools(
            self.candidate_repo, session, self.pool_limit, country=country,
        )
        candidates = merge_pools(vendor, affiliate)
        logger.info(f"Candidates session={sid} vendor={len(vendor)} affiliate={len(affiliate)}")
        if not candidates:
            logger.warning(f"No candidates from either pool for session={sid}, returning empty page")
            self._enter(PipelineState.DONE, sid)
            return RecommendationPage(page=page, has_more=False, products=[])

        # ---- 2) Heuristic ranking ----------------------------------------
        self._enter(PipelineState.RANKING, sid)
        seen_ids, negative_ids = listing_exclusions(session.constraints)
        ranked = apply_ranking(
            candidates,
            session.constraints.interests,
            seen_ids=seen_ids,
            negative_ids=negative_ids,
            options=self.ranking_options,
        )

        # ---- 3) Optional LLM rerank (no-op strategy when disabled) ---------
        if not isinstance(self.reranker, NoopRerank):
            self._enter(PipelineState.RERANKING, sid)
            ranked = await self.reranker.rerank(ranked, session)

        # ---- 4) Page -------------------------------------------------------
        self._enter(PipelineState.PAGINATING, sid)
        products, has_more = paginate(ranked, page, page_size)

        # ---- 5) Background seen-ids + impressions -------------------------
        self._enter(PipelineState.LOGGING, sid)
        served_ids = [p.product_id for p in products]
        if served_ids:
            self.runner.spawn(self.profiles.append_seen_ids(sid, served_ids), name=f"seen:{sid}")
            self.recorder.log_impressions(sid, user_id, served_ids)

        self._enter(PipelineState.DONE, sid)
        logger.info(
            f"Recommendation pipeline done session={sid} ranked={len(ranked)} returned={len(products)} "
            f"has_more={has_more} elapsed={time.perf_counter() - t0:.3f}s"
        )
        return RecommendationPage(page=page, has_more=has_more, products=products)
