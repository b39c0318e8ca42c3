"""Shared fakes for the test suite.

Settings load at import time, so a dummy API key is exported before any
``montreal_rag`` module is imported.
"""

from __future__ import annotations

import os

os.environ.setdefault("OPENAI_API_KEY", "sk-test-key")

import lancedb
import pytest
from langchain_core.messages import AIMessage, BaseMessage


class FakeEmbedder:
    """Maps known texts to fixed vectors; everything else embeds to ``default``."""

    def __init__(self, vectors: dict[str, list[float]] | None = None, default: list[float] | None = None) -> None:
        self.vectors = vectors or {}
        self.default = default or [1.0, 0.0]
        self.queries: list[str] = []

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.vectors.get(text, self.default) for text in texts]

    def embed_query(self, text: str) -> list[float]:
        self.queries.append(text)
        return self.vectors.get(text, self.default)


class RecordingChatModel:
    """Async chat model that records every call and returns a canned answer."""

    def __init__(self, answer: str = "Try the Lac aux Castors rink.", error: Exception | None = None) -> None:
        self.answer = answer
        self.error = error
        self.calls: list[list[BaseMessage]] = []

    async def ainvoke(self, input: list[BaseMessage]) -> AIMessage:  # noqa: A002
        self.calls.append(list(input))
        if self.error is not None:
            raise self.error
        return AIMessage(content=self.answer)


MONTREAL_ROWS = [
    {"id": "rink-1", "text": "Patinoire du Lac aux Castors, outdoor skating on Mount Royal.", "vector": [1.0, 0.0]},
    {"id": "rink-2", "text": "Patinoire Parc La Fontaine, outdoor rink with music.", "vector": [0.9, 0.1]},
    {"id": "market-1", "text": "Marché Jean-Talon, open-air public market.", "vector": [0.0, 1.0]},
]


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def db(tmp_path) -> lancedb.DBConnection:
    """Local LanceDB with a populated ``montreal_data`` table."""
    connection = lancedb.connect(str(tmp_path / "lancedb"))
    connection.create_table("montreal_data", data=MONTREAL_ROWS)
    return connection


@pytest.fixture
def empty_db(tmp_path) -> lancedb.DBConnection:
    return lancedb.connect(str(tmp_path / "empty"))
