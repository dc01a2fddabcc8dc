"""
Stub Response Generator for PDF Studio

Model-free fallback used whenever no inference tier produces usable output.
Everything here is deterministic and derived from the input text:
statistics, keyword frequencies, sentence extraction and regex patterns.
The output is always a non-empty string (or non-empty list).
"""

import re
from collections import Counter
from typing import NamedTuple

from ..logging_config import debug_log

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    "be", "have", "has", "had", "do", "does", "did", "will", "would",
    "could", "should", "may", "might", "must", "can", "this", "that",
    "these", "those", "i", "you", "he", "she", "it", "we", "they",
    "its", "our", "their", "his", "her", "them", "not", "all", "any",
    "into", "than", "then", "there", "which", "who", "what", "when",
    "where", "also", "such", "other", "each",
})

WORDS_PER_MINUTE = 200
MAX_KEYWORDS = 10
PREVIEW_SENTENCES = 5
PREVIEW_MIN_CHARS = 20
PREVIEW_MAX_CHARS = 150
MAX_STRUCTURE_ITEMS = 20
MAX_ENTITIES = 25

_HEADING_TITLE = re.compile(r"[A-Z][A-Za-z\s]+")
_HEADING_NUMBERED = re.compile(r"\d+\.\s+.+")

_MONTHS = (
    "January|February|March|April|May|June|July|August|September|October|November|December"
)
_DATE = re.compile(
    rf"\b(?:\d{{1,2}}[/-]\d{{1,2}}[/-]\d{{2,4}}|\d{{4}}-\d{{2}}-\d{{2}}|(?:{_MONTHS})\s+\d{{1,2}},?\s+\d{{4}})\b"
)
_EMAIL = re.compile(r"\b[\w.+-]+@[\w-]+\.[\w.-]+\b")
_MONEY = re.compile(r"[$€£]\s?\d[\d,]*(?:\.\d{2})?")
_PROPER_NAME = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+){1,3}\b")
_ORGANIZATION_SUFFIX = re.compile(
    r"\b(?:Inc|Corp|Corporation|LLC|Ltd|Bank|University|Company|Group|Association)\b"
)
_PHONE = re.compile(r"(?<!\d)(?:\+?\d{1,3}[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]\d{4}(?!\d)")
_SSN = re.compile(r"\b\d{3}-\d{2}-\d{4}\b")
_CARD = re.compile(r"\b(?:\d[ -]?){12,15}\d\b")
_CONFIDENTIAL = re.compile(r"\b(?:confidential|password|secret|private and privileged)\b", re.IGNORECASE)
_TABLE_SPLIT = re.compile(r"\t+|\s*\|\s*|\s{2,}")


class TextStatistics(NamedTuple):
    """Basic counts for a block of text."""
    characters: int
    words: int
    sentences: int
    lines: int
    reading_minutes: int


def split_sentences(text: str) -> list[str]:
    """Split on runs of sentence-ending punctuation, dropping empty pieces."""
    return [s.strip() for s in re.split(r"[.!?]+", text) if s.strip()]


def text_statistics(text: str) -> TextStatistics:
    """
    Count characters, words, sentences and lines.

    Reading time assumes 200 words per minute, rounded down.
    """
    words = len(text.split())
    return TextStatistics(
        characters=len(text),
        words=words,
        sentences=len(split_sentences(text)),
        lines=len(text.split("\n")),
        reading_minutes=words // WORDS_PER_MINUTE,
    )


def extract_keywords(text: str, top_n: int = MAX_KEYWORDS) -> list[tuple[str, int]]:
    """
    Most frequent significant words.

    Words are lowercased and stripped of punctuation; words shorter than
    three characters and stop words are ignored. Ties keep first-seen order.

    Returns:
        list[tuple[str, int]]: (word, count) pairs, most frequent first
    """
    counts = Counter()
    for word in text.lower().split():
        word = re.sub(r"[^a-z0-9]", "", word)
        if len(word) >= 3 and word not in STOP_WORDS:
            counts[word] += 1
    return counts.most_common(top_n)


def _question_keywords(text: str) -> set[str]:
    words = re.findall(r"\b[a-zA-Z]+\b", text.lower())
    return {w for w in words if len(w) >= 3 and w not in STOP_WORDS}


def _clean_sentence(sentence: str) -> str:
    cleaned = re.sub(r"\s+", " ", sentence).strip()
    if cleaned and cleaned[-1] not in ".!?":
        cleaned += "."
    return cleaned


def _unique(items):
    seen = set()
    for item in items:
        if item not in seen:
            seen.add(item)
            yield item


class StubResponseGenerator:
    """
    Deterministic, input-derived responses for every AI operation.

    Example:
        stub = StubResponseGenerator()
        summary = stub.summary(document_text)
        reply = stub.chat("How many pages?", document_text)
    """

    def summary(self, text: str | None) -> str:
        """Statistics, key topics and a content preview."""
        if not text or not text.strip():
            return "Summary: No text content found in the document."

        stats = text_statistics(text)
        lines = [
            "DOCUMENT SUMMARY",
            "",
            "Statistics:",
            f"• {stats.characters:,} characters",
            f"• {stats.words:,} words",
            f"• {stats.sentences:,} sentences",
            f"• {stats.lines:,} lines",
            f"• Estimated reading time: {stats.reading_minutes} minutes",
            "",
            "Key Topics:",
        ]
        lines.extend(f"• {word} ({count})" for word, count in extract_keywords(text))
        lines.extend(["", "Content Preview:"])

        for sentence in split_sentences(text)[:PREVIEW_SENTENCES]:
            if len(sentence) > PREVIEW_MIN_CHARS:
                preview = sentence[:PREVIEW_MAX_CHARS]
                if len(sentence) > PREVIEW_MAX_CHARS:
                    preview += "..."
                lines.append(f"• {preview}")

        lines.extend([
            "",
            "Note: This is an automated text analysis. A full AI-powered summary",
            "requires a text generation model (e.g. a GGUF model for llama.cpp).",
        ])
        debug_log(f"[STUB] Generated summary for {stats.words} words")
        return "\n".join(lines)

    def chat(self, message: str | None, context: str | None = None) -> str:
        """
        Canned reply chosen by ordered keyword patterns.

        Questions ending in '?' are answered with the best matching sentences
        from the context when any sentence shares a keyword with the question.
        """
        message = message or ""
        lowered = message.lower()

        if "what" in lowered and "about" in lowered:
            return ("This document appears to be a text-based PDF. I can help you analyze it, "
                    "extract text, or search for specific content. Try asking about specific "
                    "topics or sections.")

        if "how many" in lowered and ("page" in lowered or "word" in lowered):
            reply = ("To get detailed statistics about the document, try the 'Generate Summary' "
                     "feature which provides word count, page count, and reading time estimates.")
            if context and context.strip():
                stats = text_statistics(context)
                reply += (f" The extracted text has {stats.words:,} words in "
                          f"{stats.sentences:,} sentences.")
            return reply

        if "summarize" in lowered or "summary" in lowered:
            return ("Click the 'Generate Summary' button in the AI Summary tab to get a detailed "
                    "overview of the document including statistics and key topics.")

        if "search" in lowered or "find" in lowered:
            return ("To search within the document, use the Search feature in the left sidebar. "
                    "You can also extract all text using the Tools menu.")

        if "translate" in lowered:
            return ("Translation features are available in the AI Assistant tab. Select your "
                    "target language and the text you want to translate.")

        if "?" in message and context:
            answer = self._extract_answer(message, context)
            if answer:
                return f"Based on the document: {answer}"

        return (
            "AI Chat Assistant (Limited Mode)\n\n"
            f"I understand your question: \"{message}\"\n\n"
            "Currently running in limited mode. I can help with:\n"
            "• Document statistics and summaries\n"
            "• Text extraction and search\n"
            "• Basic document analysis\n\n"
            "For full conversational AI, install llama.cpp and place a GGUF model "
            "(e.g. Llama 3.2 3B or Phi-3 Mini) in the models/ folder."
        )

    def _extract_answer(self, question: str, context: str, max_sentences: int = 3) -> str:
        keywords = _question_keywords(question)
        if not keywords:
            return ""

        scored = []
        for index, sentence in enumerate(split_sentences(context)):
            words = set(re.findall(r"\b[a-zA-Z]+\b", sentence.lower()))
            score = len(keywords & words)
            if score:
                scored.append((-score, index, sentence))
        scored.sort()

        answer = " ".join(_clean_sentence(s) for _, _, s in scored[:max_sentences])
        if len(answer) > 500:
            answer = answer[:500].rsplit(" ", 1)[0] + "..."
        return answer

    def entities(self, text: str | None) -> list[str]:
        """Dates, emails, money amounts and capitalised names found by pattern."""
        text = text or ""
        found = []
        found.extend(f"Date: {m}" for m in _DATE.findall(text))
        found.extend(f"Email: {m}" for m in _EMAIL.findall(text))
        found.extend(f"Amount: {m.strip()}" for m in _MONEY.findall(text))
        for name in _PROPER_NAME.findall(text):
            label = "Organization" if _ORGANIZATION_SUFFIX.search(name) else "Name"
            found.append(f"{label}: {name}")

        entities = list(_unique(found))[:MAX_ENTITIES]
        if not entities:
            return ["No entities detected (pattern-based analysis; an AI model finds more)"]
        return entities

    def translation(self, text: str | None, target_language: str) -> str:
        if not text or not text.strip():
            return f"No text provided for translation to {target_language}."
        return (f"Translation to {target_language} requires a local language model.\n\n"
                f"Original text:\n{text}")

    def insights(self, text: str | None) -> str:
        """Structure, content and reading analysis derived from statistics."""
        if not text or not text.strip():
            return "DOCUMENT INSIGHTS\n\nNo text content found in the document."

        stats = text_statistics(text)
        words_per_sentence = stats.words / stats.sentences if stats.sentences else stats.words
        if words_per_sentence < 12:
            complexity = "Low"
        elif words_per_sentence < 20:
            complexity = "Moderate"
        else:
            complexity = "High"

        headings = self.structure(text)
        heading_count = 0 if headings[0].startswith("No headings") else len(headings)
        topics = ", ".join(word for word, _ in extract_keywords(text, 5)) or "none detected"

        return "\n".join([
            "DOCUMENT INSIGHTS",
            "",
            "Structure Analysis:",
            f"• {heading_count} heading-like lines detected",
            f"• {stats.lines:,} lines across {stats.sentences:,} sentences",
            "",
            "Content Analysis:",
            f"• Key topics: {topics}",
            f"• Average sentence length: {words_per_sentence:.1f} words",
            "",
            "Reading Analysis:",
            f"• Estimated reading time: {stats.reading_minutes} minutes",
            f"• Complexity level: {complexity}",
            "",
            "Recommendations:",
            "• Use the OCR feature if the document contains images with text",
            "• Use the search feature for specific information",
            "",
            "Note: Detailed AI-powered insights require a local language model.",
        ])

    def sensitive_content(self, text: str | None) -> list[str]:
        """Pattern hits for common kinds of personal or confidential data."""
        text = text or ""
        checks = (
            ("email addresses", _EMAIL),
            ("phone numbers", _PHONE),
            ("social security numbers", _SSN),
            ("payment card numbers", _CARD),
            ("confidentiality markers", _CONFIDENTIAL),
        )
        findings = []
        for label, pattern in checks:
            count = len(pattern.findall(text))
            if count:
                findings.append(f"Potential {label} detected ({count})")
        return findings or ["No sensitive content patterns detected"]

    def tables(self, text: str | None) -> list[str]:
        """
        Blocks of two or more consecutive lines that split into the same
        number (>= 2) of cells on tabs, pipes or runs of spaces.
        """
        tables = []
        block: list[list[str]] = []

        def flush():
            if len(block) >= 2:
                header = " | ".join(block[0])
                tables.append(
                    f"Table {len(tables) + 1} ({len(block)} rows x {len(block[0])} columns): {header}"
                )
            block.clear()

        for line in (text or "").split("\n"):
            cells = [c for c in _TABLE_SPLIT.split(line.strip()) if c]
            if len(cells) >= 2 and (not block or len(cells) == len(block[0])):
                block.append(cells)
                continue
            flush()
            if len(cells) >= 2:
                block.append(cells)
        flush()

        return tables or ["No tables detected"]

    def structure(self, text: str | None) -> list[str]:
        """Short Title-case or numbered lines, first twenty."""
        headings = []
        for line in (text or "").split("\n"):
            line = line.strip()
            if not line or len(line) >= 100:
                continue
            if _HEADING_TITLE.fullmatch(line) or _HEADING_NUMBERED.fullmatch(line):
                headings.append(f"Heading: {line}")
        return headings[:MAX_STRUCTURE_ITEMS] or ["No headings detected"]
