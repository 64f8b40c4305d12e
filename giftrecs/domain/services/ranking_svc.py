# giftrecs/domain/services/ranking_svc.py

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set
import logging

from giftrecs.core.config import Settings
from giftrecs.domain.models.product import CandidateProduct, RankedProduct
from giftrecs.domain.services.constants import (
    WEIGHT_SIMILARITY,
    WEIGHT_QUALITY,
    WEIGHT_RECENCY,
    WEIGHT_POPULARITY,
    UNKNOWN_RETAILER,
    BADGE_PARTNER,
    BADGE_PRIME,
    BADGE_FREE_SHIPPING,
    BADGE_BEST_SELLER,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankingOptions:
    """Business tuning values for the ranking stage."""
    vendor_boost: float = 1.3
    interest_boost: float = 0.2
    diversify: bool = True
    max_per_retailer: int = 4
    max_results: int = 60
    similarity_fallback: float = 0.5

    @classmethod
    def from_settings(cls, settings: Settings) -> "RankingOptions":
        return cls(
            vendor_boost=settings.recs_vendor_boost,
            interest_boost=settings.recs_interest_boost,
            diversify=settings.recs_diversify,
            max_per_retailer=settings.recs_max_per_retailer,
            max_results=settings.recs_max_results,
            similarity_fallback=settings.recs_similarity_fallback,
        )


# =============================================================================
#                               SCORING
# =============================================================================

def compute_base_score(product: CandidateProduct, similarity_fallback: float = 0.5) -> float:
    """
    Weighted linear blend of the four signals.
    Only here does a missing similarity become the neutral fallback, and a
    missing quality/recency/popularity become 0.
    """
    similarity = product.similarity if product.similarity is not None else similarity_fallback
    quality = product.quality_score or 0.0
    recency = product.recency_score or 0.0
    popularity = product.popularity_score or 0.0

    return (
        similarity * WEIGHT_SIMILARITY
        + quality * WEIGHT_QUALITY
        + recency * WEIGHT_RECENCY
        + popularity * WEIGHT_POPULARITY
    )


def count_interest_matches(categories: Iterable[str], interests_lower: List[str]) -> int:
    """Number of interests that are a substring of at least one category (case-insensitive)."""
    cats = [c.lower() for c in categories]
    return sum(1 for interest in interests_lower if any(interest in c for c in cats))


def score_candidate(
    product: CandidateProduct,
    interests_lower: List[str],
    options: RankingOptions,
) -> float:
    score = compute_base_score(product, options.similarity_fallback)

    if product.is_vendor:
        score *= options.vendor_boost

    matches = count_interest_matches(product.categories, interests_lower)
    if matches:
        score *= 1 + matches * options.interest_boost

    return score


def derive_badges(product: CandidateProduct) -> List[str]:
    badges: List[str] = []
    if product.is_vendor:
        badges.append(BADGE_PARTNER)
    if product.prime_eligible:
        badges.append(BADGE_PRIME)
    if product.free_shipping:
        badges.append(BADGE_FREE_SHIPPING)
    if product.best_seller:
        badges.append(BADGE_BEST_SELLER)
    return badges


# =============================================================================
#                               PUBLIC API
# =============================================================================

def apply_ranking(
    candidates: List[CandidateProduct],
    interests: List[str],
    *,
    seen_ids: Optional[Set[str]] = None,
    negative_ids: Optional[Set[str]] = None,
    options: Optional[RankingOptions] = None,
) -> List[RankedProduct]:
    """
    Score, sort, diversify and cap the candidate list.

    - Seen and negative ids are removed before scoring.
    - Sort is stable: equal scores keep retrieval order.
    - At most `max_per_retailer` items per retailer when diversifying;
      over-cap items are skipped, not demoted.
    - Output stops at `max_results`, ranks are 1..N.
    """
    options = options or RankingOptions()
    seen_ids = seen_ids or set()
    negative_ids = negative_ids or set()
    interests_lower = [i.lower() for i in interests if i]

    eligible = [p for p in candidates if p.product_id not in seen_ids and p.product_id not in negative_ids]
    logger.debug(f"Ranking {len(eligible)}/{len(candidates)} candidates after exclusions")

    scored = [(p, score_candidate(p, interests_lower, options)) for p in eligible]
    scored = sorted(scored, key=lambda pair: pair[1], reverse=True)

    retailer_counts: Dict[str, int] = {}
    ranked: List[RankedProduct] = []
    for product, score in scored:
        if options.diversify:
            retailer = product.retailer or UNKNOWN_RETAILER
            count = retailer_counts.get(retailer, 0)
            if count >= options.max_per_retailer:
                continue
            retailer_counts[retailer] = count + 1

        ranked.append(RankedProduct(
            **product.model_dump(),
            final_score=score,
            rank=len(ranked) + 1,
            badges=derive_badges(product),
        ))

        if len(ranked) >= options.max_results:
            break

    logger.info(f"Ranked {len(ranked)} products (retailers={len(retailer_counts)}, cap={options.max_results})")
    return ranked


def reassign_ranks(products: List[RankedProduct]) -> List[RankedProduct]:
    return [p.model_copy(update={"rank": i}) for i, p in enumerate(products, start=1)]
