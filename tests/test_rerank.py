import asyncio
import json

import pytest

from fakes import FakeChat
from giftrecs.core.config import Settings
from giftrecs.domain.services.prompts import DEFAULT_PREFERENCE_SUMMARY, candidate_line, rerank_task
from giftrecs.domain.services.rerank_svc import (
    ModelRerank,
    NoopRerank,
    build_reranker,
    parse_order,
)


def _ids(products):
    return [p.product_id for p in products]


def test_parse_order_dedupes_and_skips_non_strings():
    assert parse_order('{"order": ["a", 3, "b", "a", null]}') == ["a", "b"]


def test_parse_order_strips_code_fences():
    assert parse_order('```json\n{"order": ["x"]}\n```') == ["x"]


@pytest.mark.parametrize("content", ["", "not json", '{"order": "not-an-array"}', '{"ids": ["a"]}'])
def test_parse_order_rejects_bad_output(content):
    with pytest.raises(ValueError):
        parse_order(content)


def test_provider_error_keeps_input(make_ranked, session):
    ranked = make_ranked(5)
    rerank = ModelRerank(FakeChat(error=RuntimeError("timeout")))
    out = asyncio.run(rerank.rerank(ranked, session))
    assert out == ranked


def test_non_array_order_keeps_input(make_ranked, session):
    ranked = make_ranked(5)
    rerank = ModelRerank(FakeChat(content='{"order":"not-an-array"}'))
    out = asyncio.run(rerank.rerank(ranked, session))
    assert out == ranked


def test_reorders_head_appends_dropped_then_tail(make_ranked, session):
    ranked = make_ranked(6)
    ids = _ids(ranked)
    # head is the first 4; model returns two of them reversed plus an unknown id
    chat = FakeChat(content=json.dumps({"order": [ids[3], "ghost", ids[1], ids[5]]}))
    out = asyncio.run(ModelRerank(chat).rerank(ranked, session, top_n=4))

    assert _ids(out) == [ids[3], ids[1], ids[0], ids[2], ids[4], ids[5]]
    assert [p.rank for p in out] == [1, 2, 3, 4, 5, 6]
    assert sorted(_ids(out)) == sorted(ids)


def test_slice_never_exceeds_thirty(make_ranked, session):
    ranked = make_ranked(40)
    chat = FakeChat(content=json.dumps({"order": _ids(ranked)[::-1]}))
    out = asyncio.run(ModelRerank(chat, default_top_n=50).rerank(ranked, session))

    _, user_prompt, _, _ = chat.prompts[0]
    assert f"30. id={ranked[29].product_id}" in user_prompt
    assert f"id={ranked[30].product_id} " not in user_prompt
    # ids outside the slice are ignored by the model reply, tail stays put
    assert _ids(out)[:30] == _ids(ranked)[:30][::-1]
    assert _ids(out)[30:] == _ids(ranked)[30:]


def test_chat_settings_forwarded(make_ranked, session):
    chat = FakeChat(content='{"order": []}')
    asyncio.run(ModelRerank(chat, temperature=0.1, max_tokens=99).rerank(make_ranked(2), session))
    _, _, temperature, max_tokens = chat.prompts[0]
    assert (temperature, max_tokens) == (0.1, 99)


def test_empty_input_skips_model(session):
    chat = FakeChat(content='{"order": []}')
    assert asyncio.run(ModelRerank(chat).rerank([], session)) == []
    assert chat.prompts == []


def test_noop_rerank_returns_input(make_ranked, session):
    ranked = make_ranked(3)
    assert asyncio.run(NoopRerank().rerank(ranked, session)) is ranked


def test_prompt_lists_items_and_interests(make_ranked):
    ranked = make_ranked(2)
    task = rerank_task(ranked, ["Coffee", " "])
    assert "The user cares about: Coffee." in task
    assert f"1. id={ranked[0].product_id}" in task
    assert DEFAULT_PREFERENCE_SUMMARY in rerank_task(ranked, [])


def test_candidate_line_caps_categories(make_ranked):
    product = make_ranked(1)[0].model_copy(update={"categories": list("abcdefg"), "price": 12.0})
    line = candidate_line(1, product)
    assert line.endswith("| price=12.00 USD | categories=a, b, c, d, e")


def test_build_reranker_follows_flag():
    chat = FakeChat()
    assert isinstance(build_reranker(Settings(RECS_LLM_RERANK_ENABLED=False), chat), NoopRerank)

    rerank = build_reranker(Settings(RECS_LLM_RERANK_ENABLED=True, recs_rerank_top_n=7), chat)
    assert isinstance(rerank, ModelRerank)
    assert rerank.chat is chat
    assert rerank.default_top_n == 7
