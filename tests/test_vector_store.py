from __future__ import annotations

import lancedb
import pytest

from conftest import FakeEmbedder
from montreal_rag.src.database.vector_store import LanceDbVectorStore, SearchParams, TableNotFoundError, get_connection, open_table


def _index(db: lancedb.DBConnection, embedder: FakeEmbedder, **params) -> LanceDbVectorStore:
    return LanceDbVectorStore(open_table(db, "montreal_data"), embedder, "id", SearchParams(**params))


def test_open_missing_table_raises(empty_db: lancedb.DBConnection) -> None:
    with pytest.raises(TableNotFoundError) as excinfo:
        open_table(empty_db, "montreal_data")
    assert excinfo.value.table_name == "montreal_data"
    assert excinfo.value.__cause__ is not None


def test_top_n_returns_closest_records_in_order(db: lancedb.DBConnection, embedder: FakeEmbedder) -> None:
    hits = _index(db, embedder).top_n("Where can I skate outdoors?", 2)

    assert [doc_id for _, doc_id, _ in hits] == ["rink-1", "rink-2"]
    assert hits[0][0] == pytest.approx(0.0, abs=1e-6)
    assert hits[0][0] <= hits[1][0]
    assert embedder.queries == ["Where can I skate outdoors?"]


def test_top_n_strips_vector_and_distance(db: lancedb.DBConnection, embedder: FakeEmbedder) -> None:
    _, _, document = _index(db, embedder).top_n("skating", 1)[0]

    assert set(document) == {"id", "text"}
    assert document["text"].startswith("Patinoire du Lac aux Castors")


def test_top_n_zero_does_not_embed(db: lancedb.DBConnection, embedder: FakeEmbedder) -> None:
    assert _index(db, embedder).top_n("anything", 0) == []
    assert embedder.queries == []


def test_top_n_ids(db: lancedb.DBConnection) -> None:
    embedder = FakeEmbedder(default=[0.0, 1.0])
    ids = _index(db, embedder).top_n_ids("fresh produce", 1)
    assert [doc_id for _, doc_id in ids] == ["market-1"]


def test_where_filter(db: lancedb.DBConnection, embedder: FakeEmbedder) -> None:
    hits = _index(db, embedder, where="id LIKE 'market%'").top_n("skating", 3)
    assert [doc_id for _, doc_id, _ in hits] == ["market-1"]


def test_unknown_id_field_rejected(db: lancedb.DBConnection, embedder: FakeEmbedder) -> None:
    with pytest.raises(ValueError, match="record_id"):
        LanceDbVectorStore(open_table(db, "montreal_data"), embedder, "record_id")


def test_embedding_failure_propagates(db: lancedb.DBConnection) -> None:
    class BrokenEmbedder(FakeEmbedder):
        def embed_query(self, text: str) -> list[float]:
            raise RuntimeError("rate limited")

    with pytest.raises(RuntimeError, match="rate limited"):
        _index(db, BrokenEmbedder()).top_n("skating", 2)


def test_get_connection_is_cached(tmp_path) -> None:
    uri = str(tmp_path / "cached")
    assert get_connection(uri) is get_connection(uri)


def test_search_params_are_frozen() -> None:
    params = SearchParams()
    assert params.distance_type == "cosine"
    with pytest.raises(Exception):
        params.distance_type = "l2"  # type: ignore[misc]
