import asyncio
import logging

from fakes import FakeEmbedder, FakeEventRepo, FakeProductRepo, FakeSessionRepo, RecordingDB
from giftrecs.domain.models.event import EventAction, RecommendationEvent
from giftrecs.domain.repositories.event_repo import EventRepo
from giftrecs.domain.services.event_svc import EventRecorder
from giftrecs.domain.services.session_svc import SessionProfileManager
from giftrecs.utils.tasks import BackgroundRunner


def _run(coro_fn):
    """Run an async scenario that schedules background work, then drain it."""
    async def _main():
        runner = BackgroundRunner()
        result = await coro_fn(runner)
        await runner.drain()
        return result
    return asyncio.run(_main())


def test_impressions_logged_one_per_product():
    repo = FakeEventRepo()

    async def scenario(runner):
        EventRecorder(repo, runner).log_impressions("s-1", "u-1", ["p1", "p2"])

    _run(scenario)
    assert [(e.product_id, e.action, e.user_id) for e in repo.events] == [
        ("p1", "IMPRESSION", "u-1"),
        ("p2", "IMPRESSION", "u-1"),
    ]


def test_empty_impressions_schedule_nothing():
    async def scenario(runner):
        EventRecorder(FakeEventRepo(), runner).log_impressions("s-1", None, [])
        return runner.pending

    assert _run(scenario) == 0


def test_event_store_errors_are_swallowed(caplog):
    async def scenario(runner):
        recorder = EventRecorder(FakeEventRepo(fail=True), runner)
        recorder.log_impressions("s-1", None, ["p1"])
        recorder.track("s-1", EventAction.CLICK, product_id="p1")

    with caplog.at_level(logging.ERROR):
        _run(scenario)
    assert "Impression logging failed" in caplog.text
    assert "Event logging failed" in caplog.text
    assert "Background task" not in caplog.text


def _profiles(repo, vector=(1.0, 0.0)):
    return SessionProfileManager(repo, FakeEmbedder(vector=list(vector)), embedding_model="m")


def test_dislike_excludes_product_from_session():
    sessions, events = FakeSessionRepo(), FakeEventRepo()
    profiles = _profiles(sessions)

    async def scenario(runner):
        await profiles.build("s-1", "gift")
        EventRecorder(events, runner, profiles=profiles).track("s-1", EventAction.DISLIKE, product_id="p7")

    _run(scenario)
    assert sessions.docs["s-1"]["constraints"]["excluded_ids"] == ["p7"]
    assert events.events[0].action == "DISLIKE"


def test_like_nudges_session_embedding():
    sessions = FakeSessionRepo()
    profiles = _profiles(sessions)
    products = FakeProductRepo({"p7": [0.0, 1.0]})

    async def scenario(runner):
        await profiles.build("s-1", "gift")
        recorder = EventRecorder(FakeEventRepo(), runner, profiles=profiles, product_repo=products)
        recorder.track("s-1", EventAction.LIKE, product_id="p7", metadata={"position": 3})

    _run(scenario)
    assert sessions.docs["s-1"]["embedding"] == [0.8, 0.2]


def test_click_has_no_session_side_effect():
    sessions = FakeSessionRepo()
    profiles = _profiles(sessions)
    products = FakeProductRepo({"p7": [0.0, 1.0]})

    async def scenario(runner):
        await profiles.build("s-1", "gift")
        EventRecorder(FakeEventRepo(), runner, profiles=profiles, product_repo=products).track(
            "s-1", EventAction.CLICK, product_id="p7"
        )

    _run(scenario)
    assert sessions.docs["s-1"]["embedding"] == [1.0, 0.0]
    assert sessions.docs["s-1"]["constraints"]["excluded_ids"] == []


def test_event_repo_writes_plain_documents():
    db = RecordingDB()
    repo = EventRepo(db)
    events = [RecommendationEvent(session_id="s-1", product_id="p1", action=EventAction.IMPRESSION)]
    assert asyncio.run(repo.insert_many(events)) == 1
    assert asyncio.run(repo.insert_many([])) == 0

    _, docs, kwargs = db["recommendation_events"].calls[0]
    assert docs[0]["action"] == "IMPRESSION"
    assert docs[0]["session_id"] == "s-1"
    assert kwargs == {"ordered": False}


def test_indexes_for_owned_collections():
    from giftrecs.db.mongo import EVENTS, SESSIONS, ensure_indexes

    db = RecordingDB()
    asyncio.run(ensure_indexes(db))
    assert db[SESSIONS].calls == [("create_index", [("session_id", 1)], {"unique": True})]
    assert db[EVENTS].calls == [("create_index", [("session_id", 1), ("created_at", -1)], {})]
