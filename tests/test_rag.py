"""Tests for the hashed vector store and the knowledge base around it."""

import asyncio
import json
import math

import pytest

from nabd.rag.knowledge import KNOWLEDGE_DOCUMENTS
from nabd.rag.retriever import MIN_SCORE, KnowledgeBase
from nabd.rag.vector_store import (
    VECTOR_SIZE,
    InMemoryVectorStore,
    hash_token,
    to_normalized_vector,
    tokenize,
)
from nabd.schemas.knowledge import VectorStoreDocument

WEATHER_DOC = VectorStoreDocument(
    id="weather",
    title="Weather guide",
    source="internal://weather",
    content="Weather forecast, rain and temperature readings for cities.",
)
FOOTBALL_DOC = VectorStoreDocument(
    id="football",
    title="Football",
    source="internal://football",
    content="Match reports with goals and league tables.",
)


def test_tokenize_lowercases_and_drops_short_tokens():
    assert tokenize("Hello, World! a مرحبا") == ["hello", "world", "مرحبا"]


def test_hash_token_is_stable_and_bounded():
    assert hash_token("a") == 97
    assert hash_token("ab") == (97 * 31 + 98) % VECTOR_SIZE
    assert 0 <= hash_token("a much longer token than usual") < VECTOR_SIZE


def test_normalized_vector_has_unit_length():
    vector = to_normalized_vector("weather weather forecast")
    assert len(vector) == VECTOR_SIZE
    assert math.isclose(math.sqrt(sum(v * v for v in vector)), 1.0)


def test_vector_of_text_without_tokens_is_zero():
    assert to_normalized_vector("?! .") == [0.0] * VECTOR_SIZE


def test_search_ranks_relevant_document_first():
    store = InMemoryVectorStore()
    store.upsert_many([FOOTBALL_DOC, WEATHER_DOC])

    results = store.search("weather forecast", top_k=2)

    assert results[0].id == "weather"
    assert results[0].score > results[1].score


def test_upsert_replaces_by_id():
    store = InMemoryVectorStore()
    store.upsert_many([WEATHER_DOC])
    store.upsert_many([WEATHER_DOC.model_copy(update={"title": "Updated"})])

    assert store.size() == 1
    assert store.list_documents()[0].title == "Updated"


def test_repeated_upsert_leaves_search_results_unchanged():
    once = InMemoryVectorStore()
    once.upsert_many([WEATHER_DOC, FOOTBALL_DOC])
    twice = InMemoryVectorStore()
    twice.upsert_many([WEATHER_DOC, FOOTBALL_DOC])
    twice.upsert_many([WEATHER_DOC, FOOTBALL_DOC])

    def ranked(store):
        return [(r.id, r.score) for r in store.search("weather forecast", top_k=2)]

    assert twice.size() == once.size() == 2
    assert ranked(twice) == ranked(once)


def test_search_returns_at_least_one_result():
    store = InMemoryVectorStore()
    store.upsert_many([WEATHER_DOC, FOOTBALL_DOC])

    assert len(store.search("weather", top_k=0)) == 1


def test_search_on_empty_store():
    assert InMemoryVectorStore().search("anything") == []


def test_replace_all_drops_previous_documents():
    store = InMemoryVectorStore()
    store.upsert_many([WEATHER_DOC])
    store.replace_all([FOOTBALL_DOC])

    assert [d.id for d in store.list_documents()] == ["football"]


def test_document_fields_must_not_be_blank():
    with pytest.raises(ValueError):
        VectorStoreDocument(id="x", title="  ", source="s", content="c")


# --- knowledge base -----------------------------------------------------


def test_seed_documents_are_persisted_on_first_start(tmp_path):
    path = tmp_path / "data" / "knowledge.json"

    kb = KnowledgeBase(path)

    assert path.is_file()
    stored = json.loads(path.read_text(encoding="utf-8"))
    assert {d["id"] for d in stored} == {d.id for d in KNOWLEDGE_DOCUMENTS}
    assert len(kb.list_documents()) == len(KNOWLEDGE_DOCUMENTS)


def test_persisted_documents_override_seed(tmp_path):
    path = tmp_path / "knowledge.json"
    path.write_text(
        json.dumps(
            [
                {"id": "weather", "title": "Custom weather", "source": "file", "content": "Overridden."},
                {"id": "extra", "title": "Extra", "source": "file", "content": "Extra document."},
            ]
        ),
        encoding="utf-8",
    )

    kb = KnowledgeBase(path, seed=[WEATHER_DOC, FOOTBALL_DOC])
    docs = {d.id: d for d in kb.list_documents()}

    assert set(docs) == {"weather", "football", "extra"}
    assert docs["weather"].title == "Custom weather"


def test_invalid_persisted_entries_are_skipped(tmp_path):
    path = tmp_path / "knowledge.json"
    path.write_text(
        json.dumps(
            [
                {"id": "", "title": "t", "source": "s", "content": "c"},
                {"unexpected": True},
                "not an object",
                {"id": "ok", "title": "Ok", "source": "s", "content": "Valid entry."},
            ]
        ),
        encoding="utf-8",
    )

    kb = KnowledgeBase(path, seed=[WEATHER_DOC])

    assert {d.id for d in kb.list_documents()} == {"weather", "ok"}


def test_unreadable_store_falls_back_to_seed(tmp_path):
    path = tmp_path / "knowledge.json"
    path.write_text("{not json", encoding="utf-8")

    kb = KnowledgeBase(path, seed=[WEATHER_DOC])

    assert [d.id for d in kb.list_documents()] == ["weather"]
    assert json.loads(path.read_text(encoding="utf-8"))[0]["id"] == "weather"


def test_retrieve_filters_low_scores(tmp_path):
    kb = KnowledgeBase(tmp_path / "knowledge.json", seed=[WEATHER_DOC, FOOTBALL_DOC])

    assert kb.retrieve("?!") == []

    contexts = kb.retrieve("weather forecast", top_k=1)
    assert len(contexts) == 1
    assert contexts[0].title == "Weather guide"
    assert contexts[0].score >= MIN_SCORE


def test_upsert_is_written_back(tmp_path):
    path = tmp_path / "knowledge.json"
    kb = KnowledgeBase(path, seed=[WEATHER_DOC])

    kb.upsert([FOOTBALL_DOC])

    reloaded = KnowledgeBase(path, seed=[])
    assert {d.id for d in reloaded.list_documents()} == {"weather", "football"}


@pytest.mark.asyncio
async def test_upsert_async_writes_from_worker_thread(tmp_path, monkeypatch):
    written_by = []
    real_to_thread = asyncio.to_thread

    async def tracking_to_thread(fn, *args):
        written_by.append(fn.__name__)
        return await real_to_thread(fn, *args)

    monkeypatch.setattr(asyncio, "to_thread", tracking_to_thread)
    path = tmp_path / "knowledge.json"
    kb = KnowledgeBase(path, seed=[WEATHER_DOC])

    await kb.upsert_async([FOOTBALL_DOC])

    assert written_by == ["_write"]
    assert {d.id for d in kb.list_documents()} == {"weather", "football"}
    reloaded = KnowledgeBase(path, seed=[])
    assert {d.id for d in reloaded.list_documents()} == {"weather", "football"}
