from __future__ import annotations

import asyncio

import pytest
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI, OpenAIEmbeddings

from conftest import RecordingChatModel
from montreal_rag.src.core.rag_engine import AgentBuilder, OpenAIClient, format_documents

PASSAGES = [
    (0.01, "rink-1", {"id": "rink-1", "text": "Patinoire du Lac aux Castors"}),
    (0.05, "rink-2", {"id": "rink-2", "text": "Patinoire Parc La Fontaine"}),
]


class FakeIndex:
    def __init__(self, hits=PASSAGES) -> None:
        self.hits = list(hits)
        self.calls: list[tuple[str, int]] = []

    def top_n(self, query_text: str, n: int):
        self.calls.append((query_text, n))
        return self.hits[:n]


def test_dynamic_context_reaches_completion_call() -> None:
    llm = RecordingChatModel()
    index = FakeIndex()
    agent = AgentBuilder(llm).dynamic_context(2, index).build()

    asyncio.run(agent.prompt("Where can I skate outdoors?"))

    assert index.calls == [("Where can I skate outdoors?", 2)]
    (messages,) = llm.calls
    sent = "\n".join(m.content for m in messages)
    assert "Patinoire du Lac aux Castors" in sent
    assert "Patinoire Parc La Fontaine" in sent
    assert isinstance(messages[-1], HumanMessage)
    assert messages[-1].content == "Where can I skate outdoors?"


def test_context_is_sent_before_prompt() -> None:
    llm = RecordingChatModel()
    agent = AgentBuilder(llm).dynamic_context(2, FakeIndex()).build()

    asyncio.run(agent.prompt("hello"))

    context_message, prompt_message = llm.calls[0]
    assert context_message.content.startswith("<attachments>")
    assert "<file id: rink-1>" in context_message.content
    assert context_message.content.index("rink-1") < context_message.content.index("rink-2")
    assert prompt_message.content == "hello"


def test_response_is_returned_unchanged() -> None:
    answer = "  Lac aux Castors.\n\nBring skates!  "
    agent = AgentBuilder(RecordingChatModel(answer=answer)).dynamic_context(2, FakeIndex()).build()
    assert asyncio.run(agent.prompt("hi")) == answer


def test_completion_failure_propagates() -> None:
    agent = AgentBuilder(RecordingChatModel(error=ConnectionError("quota exceeded"))).dynamic_context(2, FakeIndex()).build()
    with pytest.raises(ConnectionError, match="quota exceeded"):
        asyncio.run(agent.prompt("hi"))


def test_retrieval_failure_skips_completion() -> None:
    class BrokenIndex(FakeIndex):
        def top_n(self, query_text: str, n: int):
            raise RuntimeError("search failed")

    llm = RecordingChatModel()
    agent = AgentBuilder(llm).dynamic_context(2, BrokenIndex()).build()
    with pytest.raises(RuntimeError, match="search failed"):
        asyncio.run(agent.prompt("hi"))
    assert llm.calls == []


def test_no_documents_sends_prompt_only() -> None:
    llm = RecordingChatModel()
    agent = AgentBuilder(llm).dynamic_context(2, FakeIndex(hits=[])).build()

    asyncio.run(agent.prompt("hi"))

    assert [m.content for m in llm.calls[0]] == ["hi"]


def test_preamble_and_static_context_order() -> None:
    llm = RecordingChatModel()
    agent = (
        AgentBuilder(llm)
        .preamble("You are a Montreal city guide.")
        .context("Montreal is on an island.")
        .dynamic_context(1, FakeIndex())
        .build()
    )

    asyncio.run(agent.prompt("hi"))

    system, context, prompt = llm.calls[0]
    assert isinstance(system, SystemMessage)
    assert system.content == "You are a Montreal city guide."
    assert context.content.index("Montreal is on an island.") < context.content.index("rink-1")
    assert "rink-2" not in context.content
    assert prompt.content == "hi"


def test_dynamic_context_requires_positive_sample() -> None:
    with pytest.raises(ValueError):
        AgentBuilder(RecordingChatModel()).dynamic_context(0, FakeIndex())


def test_format_documents() -> None:
    rendered = format_documents([{"id": "a", "text": "one"}, {"id": "b", "text": "two"}])
    assert rendered == "<attachments>\n<file id: a>\none\n</file>\n<file id: b>\ntwo\n</file>\n</attachments>"


def test_openai_client_builders() -> None:
    client = OpenAIClient("sk-test-key")

    embeddings = client.embedding_model("text-embedding-ada-002")
    assert isinstance(embeddings, OpenAIEmbeddings)
    assert embeddings.model == "text-embedding-ada-002"

    builder = client.agent("gpt-4o")
    assert isinstance(builder, AgentBuilder)
    assert isinstance(client.completion_model("gpt-4o"), ChatOpenAI)
    assert "sk-test-key" not in repr(client)


def test_openai_client_rejects_empty_key() -> None:
    with pytest.raises(ValueError):
        OpenAIClient("")
