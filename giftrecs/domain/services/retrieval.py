import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from giftrecs.domain.models.product import CandidateProduct, Pool, POOL_VENDOR, POOL_AFFILIATE
from giftrecs.domain.models.session import SessionProfile
from giftrecs.domain.services.constants import HEURISTIC_MIN_LIMIT

logger = logging.getLogger(__name__)


def _to_candidates(rows: List[Dict[str, Any]], pool: Pool) -> List[CandidateProduct]:
    out: List[CandidateProduct] = []
    for r in rows:
        try:
            out.append(CandidateProduct.model_validate(r))
        except ValidationError as e:
            logger.warning(f"[{pool}] skipping malformed candidate {r.get('product_id')}: {e.error_count()} errors")
    return out


async def fetch_candidates(
    candidate_repo,
    pool: Pool,
    session: SessionProfile,
    limit: int,
    *,
    country: Optional[str] = None,
) -> List[CandidateProduct]:
    """
    Fetch one candidate pool for a session.

    Vector phase when the session has an embedding; heuristic phase when it
    does not, when the vector query fails, or when it comes back empty.
    Never raises: an unrecoverable store error yields an empty pool.
    The session budget bounds both phases.
    """
    budget = {
        "min_price": session.constraints.min_price,
        "max_price": session.constraints.max_price,
    }

    # ---------- Vector phase ($vectorSearch) ----------
    if session.has_embedding:
        try:
            rows = await candidate_repo.vector_search(
                query_vector=session.embedding,
                pool=pool,
                limit=limit,
                country=country,
                **budget,
            )
            logger.info(f"[{pool}] $vectorSearch returned {len(rows)} candidates")
            if rows:
                return _to_candidates(rows, pool)
        except Exception as e:
            logger.error(f"[{pool}] $vectorSearch failed, falling back to heuristic order: {e}")
    else:
        logger.debug(f"[{pool}] no session embedding, heuristic order only")

    # ---------- Heuristic fallback ----------
    try:
        rows = await candidate_repo.heuristic_search(
            pool=pool,
            limit=max(limit, HEURISTIC_MIN_LIMIT),
            country=country,
            **budget,
        )
        logger.info(f"[{pool}] heuristic fallback returned {len(rows)} candidates")
        return _to_candidates(rows, pool)
    except Exception as e:
        logger.error(f"[{pool}] heuristic fallback failed, pool is empty: {e}")
        return []


async def fetch_candidate_pools(
    candidate_repo,
    session: SessionProfile,
    limit: int,
    *,
    country: Optional[str] = None,
) -> Tuple[List[CandidateProduct], List[CandidateProduct]]:
    """Vendor and affiliate pools, fetched concurrently. Returns (vendor, affiliate)."""
    vendor, affiliate = await asyncio.gather(
        fetch_candidates(candidate_repo, POOL_VENDOR, session, limit, country=country),
        fetch_candidates(candidate_repo, POOL_AFFILIATE, session, limit, country=country),
    )
    return vendor, affiliate
