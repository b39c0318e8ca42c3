"""
Montreal RAG - Lambda Handler
===============================
Entry point for the AWS Lambda runtime.

Per invocation:
    1. Validate the event into ``Event``.
    2. Resolve the embedding model from the provider client.
    3. Open the ``montreal_data`` table.
    4. Wrap it as a ``LanceDbVectorStore`` (primary key ``id``, cosine).
    5. Build an agent with dynamic context (top 2) over that index.
    6. Prompt the agent and return ``{"response": ...}``.

AWS Lambda Readiness
--------------------
- Settings load at import time: a missing ``OPENAI_API_KEY`` or a bad
  ``LOG_LEVEL`` fails the cold start before any request is served.
- ``OpenAIClient``, the LanceDB connection and the event loop are **module-level
  singletons** that survive warm invocations.
- Every failure propagates to the runtime as a failed invocation.

Handler setting:  ``montreal_rag.src.handler.lambda_handler``
"""

from __future__ import annotations

import asyncio

import lancedb
from pydantic import BaseModel

from montreal_rag.config.settings import settings
from montreal_rag.src.core.rag_engine import OpenAIClient
from montreal_rag.src.database.vector_store import LanceDbVectorStore, SearchParams, get_connection, open_table
from montreal_rag.src.utils.logger import get_logger

logger = get_logger(__name__)


class Event(BaseModel):
    """Invocation payload."""

    prompt: str


class AgentResponse(BaseModel):
    """Invocation result."""

    response: str


# ══════════════════════════════════════════════════════════════════════
#  PROCESS SINGLETONS
# ══════════════════════════════════════════════════════════════════════

_openai_client: OpenAIClient | None = None
_event_loop: asyncio.AbstractEventLoop | None = None


def _get_openai_client() -> OpenAIClient:
    """Return (or create) the module-level OpenAI client."""
    global _openai_client
    if _openai_client is None:
        _openai_client = OpenAIClient(settings.OPENAI_API_KEY.get_secret_value())
        logger.info("OpenAI client created (singleton).")
    return _openai_client


def _get_event_loop() -> asyncio.AbstractEventLoop:
    """
    Return (or create) the module-level event loop.

    The loop stays open across warm invocations: the OpenAI client pools
    its async HTTP connections per process, bound to the loop that
    opened them.
    """
    global _event_loop
    if _event_loop is None or _event_loop.is_closed():
        _event_loop = asyncio.new_event_loop()
        logger.info("Event loop created (singleton).")
    return _event_loop


# ══════════════════════════════════════════════════════════════════════
#  HANDLER
# ══════════════════════════════════════════════════════════════════════


async def handle(event: Event, openai_client: OpenAIClient, db: lancedb.DBConnection) -> AgentResponse:
    """Answer one prompt with records retrieved from the vector table."""
    model = openai_client.embedding_model(settings.EMBEDDING_MODEL)

    table = open_table(db, settings.LANCEDB_TABLE_NAME)

    search_params = SearchParams(distance_type=settings.DISTANCE_TYPE)
    index = LanceDbVectorStore(table, model, settings.ID_FIELD, search_params)

    agent = (
        openai_client.agent(settings.LLM_MODEL)
        .preamble(settings.AGENT_PREAMBLE)
        .dynamic_context(settings.DYNAMIC_CONTEXT_SAMPLES, index)
        .build()
    )

    response = await agent.prompt(event.prompt)
    return AgentResponse(response=response)


def lambda_handler(event: dict, context: object) -> dict[str, str]:
    """AWS Lambda entry point."""
    request = Event.model_validate(event)
    logger.info("Received prompt (%d chars).", len(request.prompt))

    result = _get_event_loop().run_until_complete(handle(request, _get_openai_client(), get_connection(settings.LANCEDB_URI)))
    return result.model_dump()
