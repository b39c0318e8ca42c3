"""
Montreal RAG - RAG Engine
===========================
Builds and runs retrieval-augmented agents on top of OpenAI via LangChain.

Architecture (OOP)
------------------
``OpenAIClient``
    Provider client.  Hands out embedding models and agent builders
    bound to a single API key.

``AgentBuilder``
    Collects the agent configuration: model, optional preamble, static
    context documents, and dynamic-context attachments
    ``(sample, index)``.

``Agent``
    Stateless pipeline.  Flow per prompt:
        1. Retrieve → ``index.top_n(prompt, sample)`` for each attachment
        2. Build context → static documents first, then retrieved ones
        3. Build messages → preamble, ``<attachments>`` block, prompt
        4. Call the chat model → async LLM invocation
        5. Return the model text unchanged

Errors from retrieval or from the model propagate to the caller; the agent
has no fallback answer.

Usage:
    from montreal_rag.src.core.rag_engine import OpenAIClient
    client = OpenAIClient(api_key)
    agent = client.agent("gpt-4o").dynamic_context(2, index).build()
    answer = await agent.prompt("Where can I skate outdoors?")
"""

from __future__ import annotations

import json
import time
from typing import Protocol, runtime_checkable

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI, OpenAIEmbeddings

from montreal_rag.config.prompt_templates import ATTACHMENTS_TEMPLATE, DOCUMENT_SEPARATOR, DOCUMENT_TEMPLATE
from montreal_rag.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type aliases ───────────────────────────────────────────────────────
ContextDocument = dict[str, str]
SearchHit = tuple[float, str, dict[str, object]]


# ══════════════════════════════════════════════════════════════════════
#  PROTOCOLS
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class VectorIndex(Protocol):
    """Anything that can return the closest records for a query."""

    def top_n(self, query_text: str, n: int) -> list[SearchHit]: ...


@runtime_checkable
class ChatModel(Protocol):
    """Async LangChain chat model surface used by the agent."""

    async def ainvoke(self, input: list[BaseMessage]) -> BaseMessage: ...


# ══════════════════════════════════════════════════════════════════════
#  AGENT
# ══════════════════════════════════════════════════════════════════════


class Agent:
    """
    Chat model with a preamble, static context and dynamic context.

    Parameters
    ----------
    llm
        Chat model exposing ``ainvoke``.
    preamble
        Optional system prompt.
    static_context
        Documents sent with every prompt.
    dynamic_context
        ``(sample, index)`` pairs queried for every prompt.
    """

    __slots__ = ("_llm", "_preamble", "_static_context", "_dynamic_context")

    def __init__(self, llm: ChatModel, preamble: str | None = None, static_context: list[ContextDocument] | None = None, dynamic_context: list[tuple[int, VectorIndex]] | None = None) -> None:
        self._llm = llm
        self._preamble = preamble
        self._static_context: list[ContextDocument] = list(static_context or [])
        self._dynamic_context: list[tuple[int, VectorIndex]] = list(dynamic_context or [])


    async def prompt(self, prompt: str) -> str:
        """Answer *prompt* with retrieved context injected ahead of it."""
        t_start = time.perf_counter()

        documents = self._static_context + self._retrieve(prompt)
        messages = self._build_messages(prompt, documents)

        t_llm = time.perf_counter()
        try:
            response = await self._llm.ainvoke(messages)
        except Exception:
            logger.exception("[AGENT] Completion call failed.")
            raise

        answer = response.content if isinstance(response.content, str) else str(response.content)
        llm_ms = (time.perf_counter() - t_llm) * 1000
        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[AGENT] %d context document(s), LLM %.1fms, total %.1fms (%d chars)", len(documents), llm_ms, total_ms, len(answer))
        return answer


    def _retrieve(self, prompt: str) -> list[ContextDocument]:
        """Query every dynamic-context index and convert hits to documents."""
        documents: list[ContextDocument] = []
        for sample, index in self._dynamic_context:
            for distance, doc_id, document in index.top_n(prompt, sample):
                logger.debug("[AGENT] Retrieved '%s' (distance=%.4f)", doc_id, distance)
                documents.append({"id": doc_id, "text": json.dumps(document, ensure_ascii=False, default=str)})
        return documents


    def _build_messages(self, prompt: str, documents: list[ContextDocument]) -> list[BaseMessage]:
        messages: list[BaseMessage] = []
        if self._preamble:
            messages.append(SystemMessage(content=self._preamble))
        if documents:
            messages.append(HumanMessage(content=format_documents(documents)))
        messages.append(HumanMessage(content=prompt))
        return messages


def format_documents(documents: list[ContextDocument]) -> str:
    """Render documents as a single ``<attachments>`` block."""
    rendered = DOCUMENT_SEPARATOR.join(DOCUMENT_TEMPLATE.format(id=doc["id"], text=doc["text"]) for doc in documents)
    return ATTACHMENTS_TEMPLATE.format(documents=rendered)


# ══════════════════════════════════════════════════════════════════════
#  AGENT BUILDER
# ══════════════════════════════════════════════════════════════════════


class AgentBuilder:
    """Fluent configuration for an ``Agent``."""

    __slots__ = ("_llm", "_preamble", "_static_context", "_dynamic_context")

    def __init__(self, llm: ChatModel) -> None:
        self._llm = llm
        self._preamble: str | None = None
        self._static_context: list[ContextDocument] = []
        self._dynamic_context: list[tuple[int, VectorIndex]] = []


    def preamble(self, preamble: str | None) -> AgentBuilder:
        self._preamble = preamble
        return self


    def context(self, text: str) -> AgentBuilder:
        """Attach a static document sent with every prompt."""
        self._static_context.append({"id": f"static_doc_{len(self._static_context)}", "text": text})
        return self


    def dynamic_context(self, sample: int, index: VectorIndex) -> AgentBuilder:
        """Retrieve the *sample* closest records from *index* on every prompt."""
        if sample < 1:
            raise ValueError(f"Dynamic context sample must be ≥ 1, got {sample}")
        self._dynamic_context.append((sample, index))
        return self


    def build(self) -> Agent:
        return Agent(self._llm, preamble=self._preamble, static_context=self._static_context, dynamic_context=self._dynamic_context)


# ══════════════════════════════════════════════════════════════════════
#  PROVIDER CLIENT
# ══════════════════════════════════════════════════════════════════════


class OpenAIClient:
    """
    OpenAI provider client.

    Constructed once per process; the models it hands out are cheap
    LangChain wrappers around the shared API key.
    """

    __slots__ = ("_api_key",)

    def __init__(self, api_key: str) -> None:
        if not api_key:
            raise ValueError("OpenAI API key must not be empty.")
        self._api_key = api_key


    def embedding_model(self, model: str) -> OpenAIEmbeddings:
        return OpenAIEmbeddings(model=model, api_key=self._api_key)


    def completion_model(self, model: str) -> ChatOpenAI:
        return ChatOpenAI(model=model, api_key=self._api_key)


    def agent(self, model: str) -> AgentBuilder:
        logger.debug("Building agent on model %s", model)
        return AgentBuilder(self.completion_model(model))


    def __repr__(self) -> str:
        return "OpenAIClient(api_key='****')"
