"""
CardChat - Prompt Templates & Fixed Responses
==============================================
Centralised prompt management for the RAG engine.  All prompt text
lives here so it can be versioned and reviewed independently of
application logic.

Exports
-------
RAG_PROMPT_TEMPLATE, NO_CONTEXT_RESPONSE, HUMAN_PREFIX, AI_PREFIX.
"""

# ══════════════════════════════════════════════════════════════════════
#  CONVERSATION HISTORY PREFIXES
# ══════════════════════════════════════════════════════════════════════

HUMAN_PREFIX: str = "Human"
AI_PREFIX: str = "AI"


# ══════════════════════════════════════════════════════════════════════
#  RAG PROMPT TEMPLATE
# ══════════════════════════════════════════════════════════════════════
# Placeholders: {chat_history}, {context}, {question}.
# The final instruction to admit missing information is mandatory.

RAG_PROMPT_TEMPLATE: str = """You are a helpful assistant that answers questions about Pokemon card prices.

Previous conversation:
{chat_history}

Context information from database:
{context}

Current question: {question}

Please provide a helpful answer based on the context and previous conversation. If you cannot find the information in the context, please say so."""


# ══════════════════════════════════════════════════════════════════════
#  NO-CONTEXT FALLBACK
# ══════════════════════════════════════════════════════════════════════
# Returned verbatim when retrieval finds nothing; the LLM is not called.

NO_CONTEXT_RESPONSE: str = "I'm sorry, I couldn't find any information about that in the card price database. Try asking about a specific card, set, or grade."
