"""
Montreal RAG - LanceDbVectorStore
===================================
Retrieval source over an opened LanceDB table:
  • Process-wide cached connection (``get_connection``)
  • Table lookup that fails loudly when the table is absent (``open_table``)
  • Query-time embedding + similarity search (``top_n`` / ``top_n_ids``)

Design decisions:
  • **Singleton DB connection** — ``get_connection()`` caches the
    ``lancedb.DBConnection`` per URI, so warm Lambda invocations re-use it.
  • **Dependency Injection** — the table and the embedder are injected,
    never built here, so the store is testable with fake embedders.
  • **Search parameters as data** — ``SearchParams`` carries the distance
    metric and tuning knobs; the store only applies them.

Usage:
    from montreal_rag.src.database.vector_store import LanceDbVectorStore, SearchParams, get_connection, open_table

    db = get_connection("/mnt/efs")
    table = open_table(db, "montreal_data")
    index = LanceDbVectorStore(table, embedder, "id", SearchParams(distance_type="cosine"))
    hits = index.top_n("Where can I skate outdoors?", 2)
"""

from __future__ import annotations

import threading
from typing import Literal, Protocol, runtime_checkable

import lancedb
from pydantic import BaseModel, ConfigDict

from montreal_rag.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type Aliases ──────────────────────────────────────────────────────
Document = dict[str, object]
SearchHit = tuple[float, str, Document]

# ── Constants ──────────────────────────────────────────────────────────
_DISTANCE_COLUMN = "_distance"
_DB_LOCK = threading.Lock()
_db_connection_cache: dict[str, lancedb.DBConnection] = {}


class TableNotFoundError(LookupError):
    """Raised when the requested table does not exist in the database."""

    def __init__(self, table_name: str) -> None:
        super().__init__(f"Table '{table_name}' was not found.")
        self.table_name = table_name


# ── Embedder Protocol ─────────────────────────────────────────────────

@runtime_checkable
class Embedder(Protocol):
    """Structural type for any LangChain-compatible embedding model."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]: ...

    def embed_query(self, text: str) -> list[float]: ...


class SearchParams(BaseModel):
    """
    Parameters applied to every vector search.

    Attributes
    ----------
    distance_type
        Similarity metric (``cosine``, ``l2`` or ``dot``).
    column
        Name of the vector column.
    nprobes
        IVF partitions to search; ``None`` keeps the LanceDB default.
    refine_factor
        Re-rank ``limit * refine_factor`` candidates with full vectors.
    where
        Optional SQL filter applied to the search.
    prefilter
        Apply ``where`` before (``True``) or after (``False``) the vector search.
    flat
        Bypass the ANN index and run an exhaustive search.
    """

    model_config = ConfigDict(frozen=True)

    distance_type: Literal["cosine", "l2", "dot"] = "cosine"
    column: str = "vector"
    nprobes: int | None = None
    refine_factor: int | None = None
    where: str | None = None
    prefilter: bool = True
    flat: bool = False


def get_connection(uri: str) -> lancedb.DBConnection:
    """
    Return a **singleton** ``lancedb.DBConnection`` for *uri*.

    Thread-safe via ``_DB_LOCK``.
    """
    if uri not in _db_connection_cache:
        with _DB_LOCK:
            if uri not in _db_connection_cache:
                logger.info("Opening new LanceDB connection: %s", uri)
                _db_connection_cache[uri] = lancedb.connect(uri)
    return _db_connection_cache[uri]


def open_table(db: lancedb.DBConnection, table_name: str) -> lancedb.table.Table:
    """
    Open *table_name* from *db*.

    Raises
    ------
    TableNotFoundError
        If the table does not exist.  The LanceDB error is chained.
    """
    try:
        table = db.open_table(table_name)
    except (ValueError, FileNotFoundError) as exc:
        logger.error("Table '%s' not found: %s", table_name, exc)
        raise TableNotFoundError(table_name) from exc

    logger.info("Opened table '%s'.", table_name)
    return table


class LanceDbVectorStore:
    """
    Vector index over a LanceDB table.

    Parameters
    ----------
    table
        An opened LanceDB table.
    embedder : Embedder
        Model used to vectorize queries; must match the model the table
        was built with.
    id_field
        Primary-key column returned as the document id.
    search_params
        ``SearchParams`` applied to every query.

    Raises
    ------
    ValueError
        If ``id_field`` or ``search_params.column`` is not in the table schema.
    """

    __slots__ = ("table", "embedder", "id_field", "search_params")

    def __init__(self, table: lancedb.table.Table, embedder: Embedder, id_field: str, search_params: SearchParams | None = None) -> None:
        self.table = table
        self.embedder: Embedder = embedder
        self.id_field: str = id_field
        self.search_params: SearchParams = search_params or SearchParams()

        columns = set(table.schema.names)
        for name in (self.id_field, self.search_params.column):
            if name not in columns:
                raise ValueError(f"Column '{name}' not found in table schema {sorted(columns)}.")


    def top_n(self, query_text: str, n: int) -> list[SearchHit]:
        """
        Embed *query_text* and return the *n* closest records.

        Returns
        -------
        list[SearchHit]
            ``(distance, id, document)`` tuples in result order.  The
            document is the matched row without the vector column and
            the distance score.
        """
        if n <= 0:
            return []

        try:
            query_vector = self.embedder.embed_query(query_text)
        except Exception as exc:
            logger.error("Failed to embed query: %s", exc)
            raise

        rows = self._build_query(query_vector, n).to_list()
        logger.info("Search returned %d results (limit=%d, metric=%s).", len(rows), n, self.search_params.distance_type)

        hits: list[SearchHit] = []
        for row in rows:
            distance = float(row.pop(_DISTANCE_COLUMN, 0.0))
            row.pop(self.search_params.column, None)
            hits.append((distance, str(row[self.id_field]), row))
        return hits


    def top_n_ids(self, query_text: str, n: int) -> list[tuple[float, str]]:
        """Same as ``top_n`` but returns only ``(distance, id)`` pairs."""
        return [(distance, doc_id) for distance, doc_id, _ in self.top_n(query_text, n)]


    def _build_query(self, query_vector: list[float], n: int):
        params = self.search_params
        query = self.table.search(query_vector, vector_column_name=params.column).distance_type(params.distance_type).limit(n)

        if params.nprobes is not None:
            query = query.nprobes(params.nprobes)
        if params.refine_factor is not None:
            query = query.refine_factor(params.refine_factor)
        if params.where:
            query = query.where(params.where, prefilter=params.prefilter)
        if params.flat:
            query = query.bypass_vector_index()
        return query


    def __repr__(self) -> str:
        return f"LanceDbVectorStore(table='{self.table.name}', id_field='{self.id_field}', metric='{self.search_params.distance_type}')"
