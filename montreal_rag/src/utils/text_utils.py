"""
Montreal RAG - Text Utilities
===============================
Helpers for turning raw dataset records into embeddable text.

Consumed by the ``IngestionPipeline``; stateless and side-effect-free.
"""

from __future__ import annotations

import re
import unicodedata

# Control characters (C0/C1) except \n, \r, \t, plus BOM and zero-width chars.
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200c\u200d\u2060\ufffe]")

# Columns that never describe the record itself.
_SKIPPED_FIELDS = {"vector", "text", "_distance"}


def clean_text(text: str) -> str:
    """
    Sanitise raw text for embedding.

    Steps:
        1. Unicode NFC normalisation (French accents arrive both
           composed and decomposed in the open-data exports).
        2. Strip non-printable / zero-width characters.
        3. Collapse runs of horizontal whitespace, *preserving* newlines.
        4. Strip every line and collapse 3+ blank lines to 2.
    """
    text = unicodedata.normalize("NFC", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    text = re.sub(r"[^\S\n]+", " ", text)
    lines = [line.strip() for line in text.splitlines()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def record_to_text(record: dict[str, object], id_field: str = "id") -> str:
    """
    Build the text to embed for a single record.

    A ``text`` field wins when present.  Otherwise every remaining scalar
    field except *id_field* is rendered as a ``key: value`` line, in
    record order.

    Examples::

        {"id": "1", "text": "Parc  La Fontaine"}      → "Parc La Fontaine"
        {"id": "2", "name": "Jean-Talon", "type": "marché"}
            → "name: Jean-Talon\\ntype: marché"
    """
    text = record.get("text")
    if isinstance(text, str) and text.strip():
        return clean_text(text)

    lines = [
        f"{key}: {value}"
        for key, value in record.items()
        if key != id_field and key not in _SKIPPED_FIELDS and isinstance(value, (str, int, float, bool)) and str(value).strip()
    ]
    return clean_text("\n".join(lines))
