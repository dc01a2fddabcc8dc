"""
Tests for prompt building and excerpt truncation.
"""

from pdfstudio.ai.prompt_templates import (
    DEFAULT_CHAT_MESSAGE,
    ELLIPSIS,
    EMPTY_DOCUMENT_PLACEHOLDER,
    SUMMARIZE_TEMPLATE,
    build_chat_prompt,
    build_entities_prompt,
    build_summarize_prompt,
    build_translate_prompt,
    truncate_text,
)


class TestTruncateText:
    def test_short_text_unchanged(self):
        assert truncate_text("short", 10) == "short"

    def test_exact_budget_unchanged(self):
        assert truncate_text("x" * 10, 10) == "x" * 10

    def test_long_text_cut_with_ellipsis(self):
        assert truncate_text("abcdefghij", 4) == "abcd..."

    def test_none_treated_as_empty(self):
        assert truncate_text(None, 5) == ""


class TestBuildPrompts:
    """Tests for the per-operation templates."""

    def test_summary_excerpt_is_budget_plus_ellipsis(self):
        """5000 characters with a 4000 budget embed exactly 4000 + '...'."""
        document = "".join(chr(ord('a') + i % 26) for i in range(5000))

        prompt = build_summarize_prompt(document, 4000)
        prefix = SUMMARIZE_TEMPLATE.format(excerpt="")
        excerpt = prompt[len(prefix):]

        assert prompt.startswith(prefix)
        assert len(excerpt) == 4000 + len(ELLIPSIS)
        assert excerpt == document[:4000] + "..."

    def test_chat_prompt_includes_context_and_question(self):
        prompt = build_chat_prompt("The lease ends in May.", "When does the lease end?", 3000)

        assert "Context: The lease ends in May." in prompt
        assert "User question: When does the lease end?" in prompt
        assert prompt.endswith("Answer:")

    def test_chat_prompt_blank_message_gets_default(self):
        prompt = build_chat_prompt("Some text", "   ", 3000)
        assert DEFAULT_CHAT_MESSAGE in prompt

    def test_empty_document_uses_placeholder(self):
        assert EMPTY_DOCUMENT_PLACEHOLDER in build_entities_prompt("", 3000)
        assert EMPTY_DOCUMENT_PLACEHOLDER in build_summarize_prompt(None, 4000)

    def test_translate_prompt_names_language(self):
        prompt = build_translate_prompt("Hello", "French", 2000)
        assert prompt.startswith("Translate the following text to French:")
        assert prompt.endswith("Hello")
