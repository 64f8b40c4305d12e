import itertools

import pytest

from giftrecs.domain.models.product import CandidateProduct
from giftrecs.domain.models.session import SessionConstraints, SessionProfile
from giftrecs.domain.services.ranking_svc import RankingOptions, apply_ranking


@pytest.fixture
def make_candidate():
    counter = itertools.count(1)

    def _make(**overrides) -> CandidateProduct:
        n = next(counter)
        data = dict(
            product_id=f"p{n}",
            title=f"Gift {n}",
            price=25.0,
            currency="USD",
            images=[f"https://img.example.com/{n}.jpg"],
            categories=[],
            retailer=f"shop{n}",
            quality_score=0.5,
            recency_score=0.5,
            popularity_score=0.5,
        )
        data.update(overrides)
        return CandidateProduct(**data)

    return _make


@pytest.fixture
def make_ranked(make_candidate):
    """n ranked products in descending score order, one retailer each."""

    def _make(n: int):
        candidates = [make_candidate(quality_score=1.0 - i / (2 * n)) for i in range(n)]
        return apply_ranking(candidates, [], options=RankingOptions(max_results=max(n, 1)))

    return _make


@pytest.fixture
def session():
    return SessionProfile(
        session_id="s-1",
        embedding=[0.1, 0.2, 0.3],
        constraints=SessionConstraints(interests=["cooking", "Coffee"]),
    )
