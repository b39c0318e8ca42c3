"""
Montreal RAG - IngestionPipeline
==================================
Offline loader that reads open-data records, embeds them, and writes
them into the LanceDB table the Lambda handler searches.

Key design decisions:
    • **Dependency Injection** – receives the LanceDB connection and the
      embedder; nothing is built here.
    • **Record-level documents** – one row per record, keyed by the
      record's ``id``.  Records without an ``id`` are skipped.
    • **Concurrency** – files are read and embedded in parallel via
      ``ThreadPoolExecutor`` (OpenAI calls are I/O-bound); rows are
      written from the calling thread only.
    • **Batch embedding** – ``_EMBED_BATCH_SIZE`` texts per request.

Usage:
    from montreal_rag.src.core.ingestor import IngestionPipeline
    pipeline = IngestionPipeline(db, embedder)
    result   = pipeline.run()
"""

from __future__ import annotations

import csv
import json
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any

import lancedb
import pyarrow as pa

from montreal_rag.config.settings import settings
from montreal_rag.src.database.vector_store import Embedder
from montreal_rag.src.utils.logger import get_logger
from montreal_rag.src.utils.text_utils import record_to_text

logger = get_logger(__name__)

_SUPPORTED_EXTENSIONS = {".json", ".jsonl", ".csv"}
_EMBED_BATCH_SIZE = 64
_MAX_WORKERS = 4

Record = dict[str, Any]
Row = dict[str, str | list[float]]


def table_schema(dimension: int) -> pa.Schema:
    """Arrow schema of the records table for *dimension*-wide embeddings."""
    return pa.schema([
        pa.field(settings.ID_FIELD, pa.utf8()),
        pa.field("text", pa.utf8()),
        pa.field("source_file", pa.utf8()),
        pa.field("vector", pa.list_(pa.float32(), dimension)),
    ])


class IngestionPipeline:
    """
    End-to-end ingestion: read → text → embed → store.

    Parameters
    ----------
    db
        An open ``lancedb.DBConnection``.
    embedder
        Embedding model exposing ``embed_documents``.  Must be the model
        the handler uses for queries.
    source_dir
        Override the source directory. Defaults to ``settings.DATA_RAW_DIR``.
    table_name
        Override the table name. Defaults to ``settings.LANCEDB_TABLE_NAME``.
    max_workers
        Number of parallel threads for file processing.
    """

    def __init__(self, db: lancedb.DBConnection, embedder: Embedder, source_dir: Path | None = None, table_name: str | None = None, max_workers: int = _MAX_WORKERS) -> None:
        self._db = db
        self._embedder = embedder
        self._source_dir = Path(source_dir or settings.DATA_RAW_DIR)
        self._table_name = table_name or settings.LANCEDB_TABLE_NAME
        self._max_workers = max_workers

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ENTRY POINT
    # ══════════════════════════════════════════════════════════════════

    def run(self) -> dict[str, Any]:
        """
        Execute the full ingestion pipeline.

        Returns
        -------
        dict
            Execution summary with keys ``total_files``, ``files_processed``,
            ``files_failed``, ``total_records`` and ``elapsed_seconds``.
        """
        t_start = time.perf_counter()

        if not self._source_dir.exists():
            logger.warning("Source directory does not exist: %s", self._source_dir)
            return self._summary(0, 0, 0, 0, time.perf_counter() - t_start)

        files = sorted(f for f in self._source_dir.iterdir() if f.suffix.lower() in _SUPPORTED_EXTENSIONS)
        if not files:
            logger.warning("No supported files found in %s", self._source_dir)
            return self._summary(0, 0, 0, 0, time.perf_counter() - t_start)

        logger.info("Starting ingestion — %d file(s) found in %s", len(files), self._source_dir)

        total_records = 0
        files_processed = 0
        files_failed = 0

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            future_to_path = {pool.submit(self._prepare_file, fp): fp for fp in files}

            for future in as_completed(future_to_path):
                filepath = future_to_path[future]
                try:
                    rows = future.result()
                except Exception:
                    logger.exception("Failed to ingest file: %s", filepath.name)
                    files_failed += 1
                    continue

                total_records += self._write(rows)
                files_processed += 1

        elapsed = time.perf_counter() - t_start
        logger.info("Ingestion complete — %d file(s) processed, %d failed, %d record(s) stored in %.2fs.", files_processed, files_failed, total_records, elapsed)
        return self._summary(len(files), files_processed, files_failed, total_records, elapsed)

    # ══════════════════════════════════════════════════════════════════
    #  PER-FILE PROCESSING
    # ══════════════════════════════════════════════════════════════════

    def _prepare_file(self, filepath: Path) -> list[Row]:
        """Read *filepath* and return embedded rows ready to write."""
        logger.info("Processing file: %s", filepath.name)

        ids: list[str] = []
        texts: list[str] = []
        for position, record in enumerate(self._read_file(filepath)):
            record_id = record.get(settings.ID_FIELD)
            if record_id is None or str(record_id).strip() == "":
                logger.warning("Skipping record %d in '%s': no '%s' field.", position, filepath.name, settings.ID_FIELD)
                continue
            text = record_to_text(record, id_field=settings.ID_FIELD)
            if not text:
                logger.warning("Skipping record '%s' in '%s': no text.", record_id, filepath.name)
                continue
            ids.append(str(record_id))
            texts.append(text)

        if not texts:
            logger.warning("Skipping empty file: %s", filepath.name)
            return []

        vectors = self._embed(texts)
        return [
            {settings.ID_FIELD: record_id, "text": text, "source_file": filepath.name, "vector": vector}
            for record_id, text, vector in zip(ids, texts, vectors)
        ]


    def _embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in batches of ``_EMBED_BATCH_SIZE``."""
        vectors: list[list[float]] = []
        for i in range(0, len(texts), _EMBED_BATCH_SIZE):
            batch = texts[i : i + _EMBED_BATCH_SIZE]
            try:
                vectors.extend(self._embedder.embed_documents(batch))
            except Exception as exc:
                logger.error("Embedding batch %d–%d failed: %s", i, i + len(batch) - 1, exc)
                raise
        return vectors


    def _write(self, rows: list[Row]) -> int:
        """Append *rows* to the table, creating it on first write."""
        if not rows:
            return 0

        if self._table_name in self._db.table_names():
            table = self._db.open_table(self._table_name)
        else:
            dimension = len(rows[0]["vector"])
            table = self._db.create_table(self._table_name, schema=table_schema(dimension))
            logger.info("Created new table '%s' (dimension=%d).", self._table_name, dimension)

        table.add(rows)
        logger.info("Added %d record(s). Table '%s' now has %d total rows.", len(rows), self._table_name, table.count_rows())
        return len(rows)

    # ══════════════════════════════════════════════════════════════════
    #  FILE READING
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def _read_file(filepath: Path) -> list[Record]:
        """
        Read records from a ``.json``, ``.jsonl`` or ``.csv`` file.

        A ``.json`` file holds either a list of records or an object with
        the list under ``"records"``.
        """
        suffix = filepath.suffix.lower()
        if suffix == ".csv":
            with filepath.open(encoding="utf-8-sig", newline="") as handle:
                return list(csv.DictReader(handle))

        raw = filepath.read_text(encoding="utf-8-sig")
        if suffix == ".jsonl":
            return [json.loads(line) for line in raw.split("\n") if line.strip()]

        payload = json.loads(raw)
        if isinstance(payload, dict):
            payload = payload.get("records", [])
        if not isinstance(payload, list):
            raise ValueError(f"Expected a list of records in {filepath.name}")
        return [record for record in payload if isinstance(record, dict)]

    # ── Summary helper ─────────────────────────────────────────────────

    @staticmethod
    def _summary(total: int, processed: int, failed: int, records: int, elapsed: float) -> dict[str, Any]:
        return {
            "total_files": total,
            "files_processed": processed,
            "files_failed": failed,
            "total_records": records,
            "elapsed_seconds": round(elapsed, 2),
        }
