"""
verify_rag.py — Retrieval check against the records table

Runs one similarity search the same way the Lambda handler does and prints
the hits, so the table contents can be checked without calling the
completion model.

Run:  python verify_rag.py "Where can I skate outdoors?"
"""

import sys

from montreal_rag.config.settings import settings
from montreal_rag.src.core.rag_engine import OpenAIClient
from montreal_rag.src.database.vector_store import LanceDbVectorStore, SearchParams, get_connection, open_table


def main():
    query = " ".join(sys.argv[1:]) or "Where can I skate outdoors?"

    embedder = OpenAIClient(settings.OPENAI_API_KEY.get_secret_value()).embedding_model(settings.EMBEDDING_MODEL)
    table = open_table(get_connection(settings.LANCEDB_URI), settings.LANCEDB_TABLE_NAME)
    index = LanceDbVectorStore(table, embedder, settings.ID_FIELD, SearchParams(distance_type=settings.DISTANCE_TYPE))

    print(f"Table '{settings.LANCEDB_TABLE_NAME}' has {table.count_rows()} rows.\n")
    print(f"Query: {query}")
    print("=" * 60)

    for i, (distance, doc_id, document) in enumerate(index.top_n(query, settings.DYNAMIC_CONTEXT_SAMPLES), 1):
        print(f"\n--- Result {i} ---")
        print(f"  Id:        {doc_id}")
        print(f"  Distance:  {distance:.4f}")
        print(f"  Source:    {document.get('source_file', 'N/A')}")
        print("  Text:")
        print(f"    {document.get('text', '')}")


if __name__ == "__main__":
    main()
