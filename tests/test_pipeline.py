import asyncio
import json

import pytest

from fakes import FakeCandidateRepo, FakeChat, FakeEmbedder, FakeEventRepo, FakeSessionRepo, candidate_row
from giftrecs.domain.models.product import POOL_AFFILIATE, POOL_VENDOR
from giftrecs.domain.models.session import SessionConstraints
from giftrecs.domain.services.constants import BADGE_PARTNER
from giftrecs.domain.services.event_svc import EventRecorder
from giftrecs.domain.services.pipeline_svc import RecommendationPipeline, listing_exclusions, merge_pools, paginate
from giftrecs.domain.services.ranking_svc import RankingOptions
from giftrecs.domain.services.rerank_svc import ModelRerank
from giftrecs.domain.services.session_svc import SessionProfileManager
from giftrecs.utils.tasks import BackgroundRunner


def test_paginate_first_and_last_page(make_ranked):
    ranked = make_ranked(75)

    items, has_more = paginate(ranked, 0, 30)
    assert len(items) == 30 and has_more
    assert items[0].rank == 1

    items, has_more = paginate(ranked, 2, 30)
    assert len(items) == 15 and not has_more
    assert items[0].rank == 61

    items, has_more = paginate(ranked, 3, 30)
    assert items == [] and not has_more


def test_paginate_exact_fit(make_ranked):
    items, has_more = paginate(make_ranked(60), 1, 30)
    assert len(items) == 30 and not has_more


@pytest.mark.parametrize("page,size", [(-1, 30), (0, 0)])
def test_paginate_rejects_bad_arguments(page, size):
    with pytest.raises(ValueError):
        paginate([], page, size)


def test_merge_pools_first_occurrence_wins(make_candidate):
    a = make_candidate(product_id="x", title="vendor copy")
    b = make_candidate(product_id="x", title="affiliate copy")
    c = make_candidate(product_id="y")
    merged = merge_pools([a], [b, c])
    assert [(p.product_id, p.title) for p in merged] == [("x", "vendor copy"), ("y", c.title)]


class Harness:
    """Pipeline wired to in-memory stores."""

    def __init__(self, candidate_repo, *, reranker=None, options=None):
        self.sessions = FakeSessionRepo()
        self.events = FakeEventRepo()
        self.profiles = SessionProfileManager(self.sessions, FakeEmbedder(), embedding_model="m")
        self.candidate_repo = candidate_repo
        self.reranker = reranker
        self.options = options

    async def page(self, session_id, page=0, page_size=30, **form):
        runner = BackgroundRunner()
        recorder = EventRecorder(self.events, runner, profiles=self.profiles)
        pipeline = RecommendationPipeline(
            self.candidate_repo,
            self.profiles,
            recorder,
            runner,
            reranker=self.reranker,
            ranking_options=self.options,
        )
        session = await self.profiles.load(session_id) if page > 0 else None
        if session is None:
            session = await self.profiles.build(session_id, "gift", SessionConstraints(**form))
        result = await pipeline.get_recommendations(session, page=page, page_size=page_size, user_id="u-1")
        await runner.drain()
        return result


def _repo(n_vendor, n_affiliate):
    vendor = [candidate_row(i, vendor_email="v@example.com", retailer=f"v{i}") for i in range(n_vendor)]
    affiliate = [candidate_row(100 + i, retailer=f"a{i}") for i in range(n_affiliate)]
    return FakeCandidateRepo(vector_rows={POOL_VENDOR: vendor, POOL_AFFILIATE: affiliate})


def test_empty_pools_give_empty_page():
    harness = Harness(FakeCandidateRepo())
    result = asyncio.run(harness.page("s-1"))
    assert result.products == []
    assert result.has_more is False
    assert harness.events.events == []


def test_first_page_schedules_seen_ids_and_impressions():
    harness = Harness(_repo(5, 5))
    result = asyncio.run(harness.page("s-1", page_size=4))

    served = [p.product_id for p in result.products]
    assert len(served) == 4 and result.has_more
    assert [p.rank for p in result.products] == [1, 2, 3, 4]
    assert harness.sessions.docs["s-1"]["constraints"]["seen_ids"] == served
    assert [e.product_id for e in harness.events.events] == served
    assert all(e.action == "IMPRESSION" and e.user_id == "u-1" for e in harness.events.events)


def test_vendor_products_outrank_equal_affiliates():
    harness = Harness(_repo(3, 3))
    result = asyncio.run(harness.page("s-1"))
    assert [p.is_vendor for p in result.products] == [True] * 3 + [False] * 3
    assert BADGE_PARTNER in result.products[0].badges


def test_seen_and_excluded_never_served_again():
    harness = Harness(_repo(10, 10))
    first = asyncio.run(harness.page("s-1", page_size=5, excluded_ids=["p100"]))
    again = asyncio.run(harness.page("s-1", page=1, page_size=5))

    first_ids = {p.product_id for p in first.products}
    again_ids = {p.product_id for p in again.products}
    assert "p100" not in first_ids | again_ids
    assert not first_ids & again_ids


def test_model_rerank_applied_when_configured():
    repo = _repo(0, 3)
    chat = FakeChat(content=json.dumps({"order": ["p102", "p100", "p101"]}))
    harness = Harness(repo, reranker=ModelRerank(chat))
    result = asyncio.run(harness.page("s-1"))
    assert [p.product_id for p in result.products] == ["p102", "p100", "p101"]
    assert [p.rank for p in result.products] == [1, 2, 3]


def test_rerank_failure_keeps_heuristic_order():
    harness = Harness(_repo(0, 3), reranker=ModelRerank(FakeChat(error=TimeoutError())))
    result = asyncio.run(harness.page("s-1"))
    assert [p.product_id for p in result.products] == ["p100", "p101", "p102"]


def test_ranking_options_applied():
    repo = FakeCandidateRepo(vector_rows={POOL_AFFILIATE: [candidate_row(i, retailer="same") for i in range(6)]})
    harness = Harness(repo, options=RankingOptions(max_per_retailer=2))
    result = asyncio.run(harness.page("s-1"))
    assert len(result.products) == 2


def _ids(page):
    return [p.product_id for p in page.products]


def test_later_pages_continue_the_listing():
    whole = asyncio.run(Harness(_repo(30, 30)).page("other", page_size=20))

    harness = Harness(_repo(30, 30))
    first = asyncio.run(harness.page("s-1", page_size=10))
    second = asyncio.run(harness.page("s-1", page=1, page_size=10))

    assert _ids(first) + _ids(second) == _ids(whole)
    assert [p.rank for p in second.products] == list(range(11, 21))
    assert second.has_more


def test_paging_walks_the_whole_listing():
    harness = Harness(_repo(15, 10))
    pages = [asyncio.run(harness.page("s-1", page=n, page_size=10)) for n in range(3)]

    served = [pid for page in pages for pid in _ids(page)]
    assert len(served) == 25 == len(set(served))
    assert [page.has_more for page in pages] == [True, True, False]


def test_new_listing_hides_previous_listing():
    harness = Harness(_repo(5, 5))
    first = asyncio.run(harness.page("s-1", page_size=4))
    restart = asyncio.run(harness.page("s-1", page_size=4))

    assert not set(_ids(first)) & set(_ids(restart))
    assert restart.products[0].rank == 1


def test_listing_exclusions_keep_served_slots():
    constraints = SessionConstraints(
        listing_excluded_ids=["old-seen", "old-disliked"],
        seen_ids=["old-seen", "p1", "p2"],
        excluded_ids=["old-disliked", "p2", "p9"],
    )
    seen, negative = listing_exclusions(constraints)

    assert seen == {"old-seen", "old-disliked"}
    # p2 was served by this listing, so disliking it must not shift later pages
    assert negative == {"old-seen", "old-disliked", "p9"}


def test_budget_bounds_candidates():
    rows = [candidate_row(1, price=5.0), candidate_row(2, price=500.0), candidate_row(3, price=50.0)]
    repo = FakeCandidateRepo(vector_rows={POOL_AFFILIATE: rows})
    result = asyncio.run(Harness(repo).page("s-1", min_price=10, max_price=100))

    assert [p.price for p in result.products] == [50.0]
    assert set(repo.budgets) == {(10, 100)}
