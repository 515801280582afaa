import asyncio

import pytest

from coach_memory.domain.models import EmbeddingType, Importance
from coach_memory.services.retrieval import (
    KeywordStrategy,
    RecencyStrategy,
    RelevanceRetriever,
    SimilarityStrategy,
    StrategySkipped,
    extract_keywords,
    merge_unique,
)
from tests.conftest import seed


def ids(records):
    return [record.id for record in records]


# Keyword extraction


def test_extract_keywords_keeps_long_lowercased_tokens():
    assert extract_keywords("I Went RUNNING at the park today") == ["went", "running", "park", "today"]


def test_extract_keywords_caps_at_five():
    assert extract_keywords("alpha bravo charlie delta echoes foxtrot golfing") == [
        "alpha",
        "bravo",
        "charlie",
        "delta",
        "echoes",
    ]


def test_extract_keywords_drops_short_tokens():
    assert extract_keywords("I am so sad") == []


def test_merge_unique_drops_ranked_duplicates_and_keeps_order():
    class R:
        def __init__(self, id):
            self.id = id

    a, b, c, d = R("a"), R("b"), R("c"), R("d")
    assert ids(merge_unique([a, b], [c, a, d, b])) == ["a", "b", "c", "d"]


# Management listing


@pytest.mark.asyncio
async def test_list_memories_management_order(retriever, store):
    old_high = await seed(store, "owner-1", "old but important", minutes_ago=50, importance=Importance.HIGH)
    recent_low = await seed(store, "owner-1", "recent low", minutes_ago=1, importance=Importance.LOW)
    recent_normal = await seed(store, "owner-1", "recent normal", minutes_ago=2)
    pinned_old = await seed(store, "owner-1", "pinned", minutes_ago=100, is_pinned=True)
    archived = await seed(store, "owner-1", "archived", minutes_ago=0, is_archived=True)
    await seed(store, "owner-2", "someone else's")

    listed = await retriever.list_memories("owner-1")

    assert ids(listed) == [pinned_old.id, old_high.id, archived.id, recent_normal.id, recent_low.id]


@pytest.mark.asyncio
async def test_list_memories_can_exclude_archived(retriever, store):
    await seed(store, "owner-1", "archived", is_archived=True)
    active = await seed(store, "owner-1", "active")

    assert ids(await retriever.list_memories("owner-1", include_archived=False)) == [active.id]


@pytest.mark.asyncio
async def test_list_memories_ties_broken_by_id(retriever, store):
    first = await seed(store, "owner-1", "same time one")
    second = await seed(store, "owner-1", "same time two")

    listed = await retriever.list_memories("owner-1")

    assert ids(listed) == sorted([first.id, second.id])


# Pinned precedence


@pytest.mark.asyncio
async def test_pinned_memories_come_first(retriever, store):
    pinned = await seed(store, "owner-1", "Call mom on Sundays", is_pinned=True, embed=True)
    match = await seed(store, "owner-1", "Could not sleep again", embed=True, minutes_ago=5)
    await seed(store, "owner-1", "Planning travel to Lisbon", embed=True, minutes_ago=6)

    relevant = await retriever.get_relevant_memories("owner-1", "sleep has been rough", limit=5)

    assert ids(relevant) == [pinned.id, match.id]


@pytest.mark.asyncio
async def test_pinned_fill_limit_skips_ranking(retriever, store, embeddings):
    pinned = [
        await seed(store, "owner-1", f"pinned {i}", is_pinned=True, minutes_ago=i) for i in range(4)
    ]

    relevant = await retriever.get_relevant_memories("owner-1", "sleep", limit=3)

    assert ids(relevant) == ids(pinned[:3])
    assert embeddings.calls == []


@pytest.mark.asyncio
async def test_archived_pinned_memories_are_excluded(retriever, store):
    await seed(store, "owner-1", "old pinned", is_pinned=True, is_archived=True)

    relevant = await retriever.get_relevant_memories("owner-1", "anything", limit=5)

    assert relevant == []


@pytest.mark.asyncio
async def test_pinned_match_is_not_duplicated(retriever, store):
    pinned = await seed(store, "owner-1", "sleep routine matters", is_pinned=True, embed=True)
    other = await seed(store, "owner-1", "slept poorly, sleep debt", embed=True, minutes_ago=3)

    relevant = await retriever.get_relevant_memories("owner-1", "sleep", limit=5)

    assert ids(relevant) == [pinned.id, other.id]


async def seed_pinned_and_crowd(store, pinned_content: str, crowd_content: str, embed: bool = False):
    pinned = [
        await seed(store, "owner-1", f"{pinned_content} {i}", is_pinned=True, embed=embed, minutes_ago=i)
        for i in range(3)
    ]
    crowd = [
        await seed(store, "owner-1", f"{crowd_content} {i}", embed=embed, minutes_ago=10 + i) for i in range(200)
    ]
    return pinned, crowd


@pytest.mark.asyncio
async def test_recency_tier_fills_budget_after_pinned(retriever, store, embeddings):
    pinned, crowd = await seed_pinned_and_crowd(store, "pinned note", "daily note")
    embeddings.fail = True

    relevant = await retriever.get_relevant_memories("owner-1", "ok", limit=5)

    assert len(relevant) == 5
    assert ids(relevant) == ids(pinned) + ids(crowd[:2])


@pytest.mark.asyncio
async def test_keyword_tier_fills_budget_after_pinned(retriever, store, embeddings):
    pinned, crowd = await seed_pinned_and_crowd(store, "running plan", "went running")
    embeddings.fail = True

    relevant = await retriever.get_relevant_memories("owner-1", "running", limit=5)

    assert len(relevant) == 5
    assert ids(relevant) == ids(pinned) + ids(crowd[:2])


@pytest.mark.asyncio
async def test_similarity_tier_fills_budget_after_pinned(retriever, store):
    pinned, crowd = await seed_pinned_and_crowd(store, "running plan", "went running", embed=True)

    relevant = await retriever.get_relevant_memories("owner-1", "running", limit=5)

    assert len(relevant) == 5
    assert ids(relevant)[:3] == ids(pinned)
    assert set(ids(relevant)[3:]) <= set(ids(crowd))


@pytest.mark.asyncio
async def test_failed_pinned_lookup_is_treated_as_none(retriever, store):
    match = await seed(store, "owner-1", "sleep notes", embed=True)
    store.failing.add("find_pinned")

    relevant = await retriever.get_relevant_memories("owner-1", "sleep", limit=5)

    assert ids(relevant) == [match.id]


# Similarity tier


@pytest.mark.asyncio
async def test_similarity_ranks_by_score_and_embeds_context_as_query(retriever, store, embeddings):
    partial = await seed(store, "owner-1", "anxiety about work deadlines", embed=True, minutes_ago=1)
    exact = await seed(store, "owner-1", "anxiety before sleeping", summary="Anxiety", embed=True, minutes_ago=2)
    await seed(store, "owner-1", "family dinner", embed=True, minutes_ago=3)
    await seed(store, "owner-1", "anxiety archived", embed=True, is_archived=True)

    relevant = await retriever.get_relevant_memories("owner-1", "anxiety", limit=5)

    assert ids(relevant) == [exact.id, partial.id]
    assert embeddings.calls == [("anxiety", EmbeddingType.QUERY)]


@pytest.mark.asyncio
async def test_similarity_respects_remaining_budget(retriever, store):
    await seed(store, "owner-1", "pinned", is_pinned=True)
    for i in range(4):
        await seed(store, "owner-1", f"work log {i}", embed=True, minutes_ago=i + 1)

    relevant = await retriever.get_relevant_memories("owner-1", "work", limit=3)

    assert len(relevant) == 3


@pytest.mark.asyncio
async def test_empty_similarity_result_does_not_fall_back(retriever, store):
    # keyword and recency tiers would both return this record
    await seed(store, "owner-1", "family dinner in Lisbon", embed=True)

    relevant = await retriever.get_relevant_memories("owner-1", "lisbon", limit=5)

    assert relevant == []


# Fallback tiers


@pytest.mark.asyncio
async def test_provider_failure_falls_back_to_keywords(retriever, store, embeddings):
    embeddings.fail = True
    keyword_hit = await seed(store, "owner-1", "Went running by the river", minutes_ago=2)
    summary_hit = await seed(store, "owner-1", "long entry", summary="RUNNING goals", minutes_ago=1)
    await seed(store, "owner-1", "Family visit", minutes_ago=0)

    relevant = await retriever.get_relevant_memories("owner-1", "more running this week", limit=5)

    assert ids(relevant) == [summary_hit.id, keyword_hit.id]


@pytest.mark.asyncio
async def test_keyword_matches_use_management_order(retriever, store, embeddings):
    embeddings.fail = True
    recent = await seed(store, "owner-1", "work was busy", minutes_ago=1)
    important = await seed(store, "owner-1", "work promotion", minutes_ago=9, importance=Importance.HIGH)

    relevant = await retriever.get_relevant_memories("owner-1", "work stress", limit=5)

    assert ids(relevant) == [important.id, recent.id]


@pytest.mark.asyncio
async def test_missing_provider_falls_back_to_keywords(store, retrieval_config):
    retriever = RelevanceRetriever.from_config(store, None, retrieval_config)
    hit = await seed(store, "owner-1", "travel to Japan")

    relevant = await retriever.get_relevant_memories("owner-1", "travel ideas", limit=5)

    assert ids(relevant) == [hit.id]


@pytest.mark.asyncio
async def test_empty_embedding_falls_back(retriever, store, embeddings):
    embeddings.empty = True
    hit = await seed(store, "owner-1", "family reunion")

    relevant = await retriever.get_relevant_memories("owner-1", "family", limit=5)

    assert ids(relevant) == [hit.id]


@pytest.mark.asyncio
async def test_vector_query_failure_falls_back(retriever, store):
    store.failing.add("nearest")
    hit = await seed(store, "owner-1", "running shoes", embed=True)

    relevant = await retriever.get_relevant_memories("owner-1", "running", limit=5)

    assert ids(relevant) == [hit.id]


@pytest.mark.asyncio
async def test_provider_timeout_falls_back(store, embeddings):
    embeddings.delay = 0.2
    retriever = RelevanceRetriever(
        store,
        [SimilarityStrategy(store, embeddings, timeout_seconds=0.01), KeywordStrategy(store), RecencyStrategy(store)],
    )
    hit = await seed(store, "owner-1", "sleep tracker", embed=True)

    relevant = await retriever.get_relevant_memories("owner-1", "sleep", limit=5)

    assert ids(relevant) == [hit.id]


@pytest.mark.asyncio
async def test_no_keywords_and_no_embeddings_returns_most_recent(retriever, store, embeddings):
    embeddings.fail = True
    records = [await seed(store, "owner-1", f"entry {i}", minutes_ago=i) for i in range(6)]
    await seed(store, "owner-1", "newest but archived", minutes_ago=0, is_archived=True)

    relevant = await retriever.get_relevant_memories("owner-1", "so sad", limit=4)

    assert ids(relevant) == ids(records[:4])


@pytest.mark.asyncio
async def test_recency_returns_fewer_when_few_exist(retriever, store, embeddings):
    embeddings.fail = True
    only = await seed(store, "owner-1", "entry")

    assert ids(await retriever.get_relevant_memories("owner-1", "ok", limit=5)) == [only.id]


@pytest.mark.asyncio
async def test_keyword_query_failure_falls_back_to_recency(retriever, store, embeddings):
    embeddings.fail = True
    store.failing.add("find_keyword")
    newest = await seed(store, "owner-1", "unrelated newest", minutes_ago=1)
    older = await seed(store, "owner-1", "unrelated older", minutes_ago=2)

    relevant = await retriever.get_relevant_memories("owner-1", "running plans", limit=5)

    assert ids(relevant) == [newest.id, older.id]


@pytest.mark.asyncio
async def test_total_exhaustion_returns_empty_list(retriever, store, embeddings):
    embeddings.fail = True
    store.failing.update({"find", "nearest"})
    await seed(store, "owner-1", "anything")

    assert await retriever.get_relevant_memories("owner-1", "running plans", limit=5) == []


@pytest.mark.asyncio
async def test_non_positive_limit_returns_nothing(retriever, store):
    await seed(store, "owner-1", "pinned", is_pinned=True)

    assert await retriever.get_relevant_memories("owner-1", "pinned", limit=0) == []


@pytest.mark.asyncio
async def test_default_limit_applies(retriever, store, embeddings):
    embeddings.fail = True
    for i in range(8):
        await seed(store, "owner-1", f"entry {i}", minutes_ago=i)

    assert len(await retriever.get_relevant_memories("owner-1", "ok")) == 5


@pytest.mark.asyncio
async def test_retrieval_is_owner_scoped(retriever, store, embeddings):
    embeddings.fail = True
    await seed(store, "owner-2", "running with friends")

    assert await retriever.get_relevant_memories("owner-1", "running", limit=5) == []


# Individual tiers


@pytest.mark.asyncio
async def test_similarity_strategy_skips_without_provider(store):
    with pytest.raises(StrategySkipped):
        await SimilarityStrategy(store, None).retrieve("owner-1", "sleep", 3)


@pytest.mark.asyncio
async def test_keyword_strategy_skips_without_keywords(store):
    with pytest.raises(StrategySkipped):
        await KeywordStrategy(store).retrieve("owner-1", "a bit sad", 3)


@pytest.mark.asyncio
async def test_recency_strategy_ignores_context(store):
    newest = await seed(store, "owner-1", "newest", minutes_ago=0)
    await seed(store, "owner-1", "older", minutes_ago=5)

    assert ids(await RecencyStrategy(store).retrieve("owner-1", "whatever", 1)) == [newest.id]


@pytest.mark.asyncio
async def test_custom_strategy_chain(store):
    class Broken:
        name = "broken"

        async def retrieve(self, owner_id, context_text, limit):
            raise RuntimeError("boom")

    class Fixed:
        name = "fixed"

        async def retrieve(self, owner_id, context_text, limit):
            await asyncio.sleep(0)
            return []

    retriever = RelevanceRetriever(store, [Broken(), Fixed()])

    assert await retriever.get_relevant_memories("owner-1", "text", limit=2) == []
