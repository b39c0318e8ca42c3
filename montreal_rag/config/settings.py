"""
Montreal RAG - Centralized Configuration
==========================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``OPENAI_API_KEY`` is typed as ``SecretStr`` and has **no default value**.
  If the key is missing at startup, Pydantic will raise a ``ValidationError``
  and the Lambda never reaches a ready state.  The raw value is never exposed
  in repr, logs, or tracebacks.

Logging
-------
``LOG_LEVEL`` accepts the usual level tokens (``trace``, ``debug``, ``info``,
``warn``, ``error``) in any case, or their numeric form ``1``–``5``.
Anything else is rejected at startup.  The value is normalised to the
matching ``logging`` level name.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ── Log level tokens → ``logging`` level names ─────────────────────────
# Python has no TRACE level; it maps onto DEBUG.
LOG_LEVEL_TOKENS: dict[str, str] = {
    "trace": "DEBUG",
    "debug": "DEBUG",
    "info": "INFO",
    "warn": "WARNING",
    "error": "ERROR",
    "5": "DEBUG",
    "4": "DEBUG",
    "3": "INFO",
    "2": "WARNING",
    "1": "ERROR",
}


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required**.

    Attributes
    ----------
    OPENAI_API_KEY : SecretStr
        API key for OpenAI embeddings and completions.  **Required.**
    LOG_LEVEL : str
        Log level token, normalised to a ``logging`` level name.
    LANCEDB_URI : str
        LanceDB location.  ``/mnt/efs`` for an EFS mount, ``/tmp`` for
        Lambda local disk, or an ``s3://`` URI.
    LANCEDB_TABLE_NAME : str
        Table holding the indexed records.
    ID_FIELD : str
        Primary-key column of the table.
    DISTANCE_TYPE : Literal["cosine", "l2", "dot"]
        Similarity metric used at query time.
    EMBEDDING_MODEL : str
        OpenAI embedding model used for query vectorization.
    LLM_MODEL : str
        OpenAI completion model the agent is bound to.
    DYNAMIC_CONTEXT_SAMPLES : int
        Number of records retrieved and injected per prompt.
    AGENT_PREAMBLE : str | None
        Optional system prompt sent ahead of the context.
    DATA_RAW_DIR : Path
        Source directory for the offline ingestion script.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    DATA_RAW_DIR: Path = BASE_DIR / "data" / "raw"

    # ── API Keys (REQUIRED, no default) ─────────────────────────────────
    OPENAI_API_KEY: SecretStr

    # ── Logging ────────────────────────────────────────────────────────
    LOG_LEVEL: str = "info"

    # ── LanceDB ────────────────────────────────────────────────────────
    LANCEDB_URI: str = "/mnt/efs"
    LANCEDB_TABLE_NAME: str = "montreal_data"
    ID_FIELD: str = "id"
    DISTANCE_TYPE: Literal["cosine", "l2", "dot"] = "cosine"

    # ── Model Configuration ────────────────────────────────────────────
    EMBEDDING_MODEL: str = "text-embedding-ada-002"
    LLM_MODEL: str = "gpt-4o"

    # ── Agent ──────────────────────────────────────────────────────────
    DYNAMIC_CONTEXT_SAMPLES: int = 2
    AGENT_PREAMBLE: str | None = None

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("LOG_LEVEL")
    @classmethod
    def _log_level_token(cls, v: str) -> str:
        level = LOG_LEVEL_TOKENS.get(v.lower())
        if level is None:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(set(LOG_LEVEL_TOKENS))}, got {v!r}")
        return level


    @field_validator("DYNAMIC_CONTEXT_SAMPLES")
    @classmethod
    def _samples_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"DYNAMIC_CONTEXT_SAMPLES must be ≥ 1, got {v}")
        return v

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent.parent / ".env", env_file_encoding="utf-8", extra="ignore", validate_default=True)


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from montreal_rag.config.settings import settings
settings = Settings()
