"""
Montreal RAG - Prompt Templates
=================================
Centralised prompt text for the agent.  Kept apart from application logic
so it can be reviewed and versioned independently.

Exports
-------
ATTACHMENTS_TEMPLATE, DOCUMENT_TEMPLATE, DOCUMENT_SEPARATOR.
"""

# ══════════════════════════════════════════════════════════════════════
#  CONTEXT DOCUMENTS
# ══════════════════════════════════════════════════════════════════════
# Retrieved records are sent as a user message ahead of the prompt,
# one <file> block per record.

DOCUMENT_TEMPLATE: str = "<file id: {id}>\n{text}\n</file>"

DOCUMENT_SEPARATOR: str = "\n"

ATTACHMENTS_TEMPLATE: str = "<attachments>\n{documents}\n</attachments>"
