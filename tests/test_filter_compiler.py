import pytest

from coach_memory.domain.models import MANAGEMENT_ORDER, MemoryRecord
from coach_memory.domain.specifications import (
    HasSummarySpecification,
    KeywordMatchSpecification,
    MissingEmbeddingSpecification,
    MissingSummarySpecification,
    OwnerSpecification,
    PinnedMemorySpecification,
    UnpinnedMemorySpecification,
    active,
    active_pinned,
    active_unpinned,
    active_unpinned_keyword_match,
)
from coach_memory.infrastructure.neo4j.filter_compiler import compile_filters
from coach_memory.infrastructure.neo4j.queries import MemoryQueries, SchemaQueries, order_clause


def test_empty_filters_compile_to_nothing():
    assert compile_filters(None) == ("", {})
    assert compile_filters({}) == ("", {})


def test_equality_and_null_checks():
    where, params = compile_filters({"owner_id": "u1", "summary": None, "embedding__isnull": False})

    assert where == "WHERE m.owner_id = $p_0 AND m.summary IS NULL AND m.embedding IS NOT NULL"
    assert params == {"p_0": "u1"}


def test_icontains_is_case_insensitive():
    where, params = compile_filters({"content__icontains": "Run"})

    assert where == "WHERE toLower(m.content) CONTAINS toLower($p_0)"
    assert params == {"p_0": "Run"}


def test_or_group_at_top_level_is_kept():
    where, params = compile_filters({"owner_id": "u1", "$or": [{"is_pinned": True}, {"summary": None}]})

    assert where == "WHERE m.owner_id = $p_0 AND (m.is_pinned = $p_1 OR m.summary IS NULL)"
    assert params == {"p_0": "u1", "p_1": True}


def test_invalid_field_name_rejected():
    with pytest.raises(ValueError):
        compile_filters({"content) DETACH DELETE m //": "x"})


@pytest.mark.parametrize("key", ["content__regex", "importance__gte"])
def test_unknown_operator_rejected(key):
    with pytest.raises(ValueError):
        compile_filters({key: "x"})


def test_owner_scoped_keyword_filter_excludes_pinned():
    spec = OwnerSpecification(owner_id="u1").and_(active_unpinned_keyword_match(["sleep", "work"]))

    where, params = compile_filters(spec.to_filter())

    assert where == (
        "WHERE (m.owner_id = $p_0 AND m.is_archived = $p_1 AND m.is_pinned = $p_2 AND "
        "(toLower(m.content) CONTAINS toLower($p_3) OR toLower(m.summary) CONTAINS toLower($p_4) OR "
        "toLower(m.content) CONTAINS toLower($p_5) OR toLower(m.summary) CONTAINS toLower($p_6)))"
    )
    assert params == {
        "p_0": "u1",
        "p_1": False,
        "p_2": False,
        "p_3": "sleep",
        "p_4": "sleep",
        "p_5": "work",
        "p_6": "work",
    }


def test_nested_conjunctions_flatten():
    spec = active().and_(UnpinnedMemorySpecification()).and_(MissingEmbeddingSpecification())

    assert len(spec.parts) == 3
    assert compile_filters(spec.to_filter()) == (
        "WHERE (m.is_archived = $p_0 AND m.is_pinned = $p_1 AND m.embedding IS NULL)",
        {"p_0": False, "p_1": False},
    )


def test_specifications_match_in_python():
    record = MemoryRecord(owner_id="u1", content="Slept badly", summary="Poor SLEEP", is_pinned=True)

    assert OwnerSpecification(owner_id="u1").is_satisfied_by(record)
    assert active().is_satisfied_by(record)
    assert active_pinned().is_satisfied_by(record)
    assert not active_unpinned().is_satisfied_by(record)
    assert KeywordMatchSpecification(keywords=("sleep",)).is_satisfied_by(record)
    assert not KeywordMatchSpecification(keywords=("work",)).is_satisfied_by(record)
    assert not active_unpinned_keyword_match(["sleep"]).is_satisfied_by(record)
    assert HasSummarySpecification().is_satisfied_by(record)
    assert not MissingSummarySpecification().is_satisfied_by(record)
    assert MissingEmbeddingSpecification().is_satisfied_by(record)
    assert not MissingEmbeddingSpecification().is_satisfied_by(record.model_copy(update={"embedding": [0.1]}))
    assert PinnedMemorySpecification().is_satisfied_by(record)


def test_keyword_specification_requires_keywords():
    with pytest.raises(ValueError):
        KeywordMatchSpecification(keywords=())


def test_order_clause():
    assert order_clause(MANAGEMENT_ORDER) == (
        "ORDER BY m.is_pinned DESC, m.importance DESC, m.created_at DESC, m.id ASC"
    )
    assert order_clause(()) == ""


def test_find_query_with_limit():
    query, _ = MemoryQueries.find("WHERE m.owner_id = $p_0", MANAGEMENT_ORDER, limited=True)

    assert query.splitlines() == [
        "MATCH (m:CoachMemory)",
        "WHERE m.owner_id = $p_0",
        "RETURN m",
        "ORDER BY m.is_pinned DESC, m.importance DESC, m.created_at DESC, m.id ASC",
        "LIMIT $limit",
    ]


def test_nearest_query_scores_only_the_owners_unpinned_records():
    query, _ = MemoryQueries.nearest_active()

    assert "{owner_id: $owner_id, is_archived: false, is_pinned: false}" in query
    assert "vector.similarity.cosine(m.embedding, $embedding)" in query
    assert "WHERE score >= $threshold" in query
    assert "db.index.vector" not in query


def test_schema_has_no_vector_index():
    assert "VECTOR" not in SchemaQueries.owner_index().upper()
    assert "UNIQUE" in SchemaQueries.memory_id_constraint()
