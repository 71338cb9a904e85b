import pytest

from journey_assistant.errors import PersistenceFailure
from journey_assistant.index import VectorIndex
from journey_assistant.store import MemoryKeyValueStore, SQLiteKeyValueStore


def test_sqlite_store_overwrites_and_survives_reopen(tmp_path):
    db_path = tmp_path / "state" / "learning.db"
    store = SQLiteKeyValueStore(db_path)
    assert store.get("rag_historical_data") is None

    store.put("rag_historical_data", '{"feedback": []}')
    store.put("rag_historical_data", '{"feedback": [1]}')
    store.close()

    reopened = SQLiteKeyValueStore(db_path)
    assert reopened.get("rag_historical_data") == '{"feedback": [1]}'
    reopened.close()


def test_sqlite_store_reports_unusable_path(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(PersistenceFailure):
        SQLiteKeyValueStore(blocker / "learning.db")


def test_memory_store_round_trip():
    store = MemoryKeyValueStore({"a": "1"})
    store.put("b", "2")

    assert store.get("a") == "1"
    assert store.get("b") == "2"
    assert store.get("c") is None


def test_vector_index_ranks_by_shared_terms():
    index = VectorIndex()
    index.add_document("doc_wallet", "wallet balance clicked header", {"type": "feedback"})
    index.add_document("doc_banner", "banner carousel swipe home", {"type": "feedback"})
    index.add_document("doc_note", "wallet", {"type": "note"})

    results = index.similarity_search("wallet balance", limit=2)

    assert [doc.doc_id for doc, _ in results][0] in {"doc_wallet", "doc_note"}
    assert len(results) == 2
    scores = [score for _, score in results]
    assert scores == sorted(scores, reverse=True)
    assert all(0.0 <= score <= 1.0 + 1e-9 for score in scores)


def test_vector_index_metadata_filter_and_removal():
    index = VectorIndex()
    index.add_document("a", "wallet clicked", {"type": "feedback"})
    index.add_document("b", "wallet clicked", {"type": "note"})

    filtered = index.similarity_search("wallet", metadata_filter={"type": "note"})
    assert [doc.doc_id for doc, _ in filtered] == ["b"]

    index.remove("b")
    assert len(index) == 1
    assert index.fetch("b") is None
    assert index.similarity_search("wallet", limit=0) == []


def test_vector_index_upsert_replaces_content():
    index = VectorIndex()
    index.add_document("a", "first text")
    index.update_document("a", "second text", {"v": 2})

    document = index.fetch("a")

    assert len(index) == 1
    assert document.content == "second text"
    assert document.metadata == {"v": 2}
    assert len(document.embedding) == 100
