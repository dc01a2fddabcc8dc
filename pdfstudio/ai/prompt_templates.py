"""
Prompt templates for the document AI operations.

Each template embeds a length-bounded excerpt of the document text. The
character budget per operation comes from AIConfig.excerpt_budgets.
"""

from ..logging_config import debug_log

ELLIPSIS = "..."

EMPTY_DOCUMENT_PLACEHOLDER = "(The document contains no extractable text.)"
DEFAULT_CHAT_MESSAGE = "Give a brief overview of this document."

SUMMARIZE_TEMPLATE = "Summarize the following document:\n\n{excerpt}"

CHAT_TEMPLATE = "Context: {excerpt}\n\nUser question: {message}\n\nAnswer:"

ENTITIES_TEMPLATE = (
    "Extract all named entities (people, organizations, locations, dates) from:\n\n{excerpt}"
)

TRANSLATE_TEMPLATE = "Translate the following text to {language}:\n\n{excerpt}"

INSIGHTS_TEMPLATE = "Analyze the following document and provide key insights:\n\n{excerpt}"

SENSITIVE_TEMPLATE = (
    "Identify any sensitive information (PII, financial data, confidential info) in:\n\n{excerpt}"
)

TABLES_TEMPLATE = (
    "Extract every table in the following document. Write one table row per line "
    "with cells separated by ' | ':\n\n{excerpt}"
)


def truncate_text(text: str | None, max_length: int) -> str:
    """
    Keep the first max_length characters, appending an ellipsis if cut.

    Args:
        text: Source text (None treated as empty)
        max_length: Character budget for the kept prefix

    Returns:
        str: text unchanged if it fits, else its prefix plus "..."
    """
    text = text or ""
    if len(text) <= max_length:
        return text
    debug_log(f"[PROMPT] Truncated excerpt from {len(text)} to {max_length} chars")
    return text[:max_length] + ELLIPSIS


def _excerpt(text: str | None, budget: int) -> str:
    if not text or not text.strip():
        return EMPTY_DOCUMENT_PLACEHOLDER
    return truncate_text(text, budget)


def build_summarize_prompt(text: str, budget: int) -> str:
    return SUMMARIZE_TEMPLATE.format(excerpt=_excerpt(text, budget))


def build_chat_prompt(context: str, message: str, budget: int) -> str:
    message = message.strip() if message and message.strip() else DEFAULT_CHAT_MESSAGE
    return CHAT_TEMPLATE.format(excerpt=_excerpt(context, budget), message=message)


def build_entities_prompt(text: str, budget: int) -> str:
    return ENTITIES_TEMPLATE.format(excerpt=_excerpt(text, budget))


def build_translate_prompt(text: str, language: str, budget: int) -> str:
    return TRANSLATE_TEMPLATE.format(language=language, excerpt=_excerpt(text, budget))


def build_insights_prompt(text: str, budget: int) -> str:
    return INSIGHTS_TEMPLATE.format(excerpt=_excerpt(text, budget))


def build_sensitive_prompt(text: str, budget: int) -> str:
    return SENSITIVE_TEMPLATE.format(excerpt=_excerpt(text, budget))


def build_tables_prompt(text: str, budget: int) -> str:
    return TABLES_TEMPLATE.format(excerpt=_excerpt(text, budget))
