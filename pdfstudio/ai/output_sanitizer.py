"""
Output Sanitizer for Local Model Responses

Cleans raw model output before it is shown to the user:
- LlamaOutputFilter drops llama.cpp diagnostics from merged stdout/stderr
- strip_prompt_echo removes a prompt the engine printed back
- is_gibberish screens tensor-runtime decodes that are not real text
- is_error_placeholder recognises bracketed error strings returned in place
  of a completion
"""

import re
from collections.abc import Iterable

from ..config import DEFAULT_LOG_FILTER_PATTERNS
from ..logging_config import debug_log

# Below this share of alphanumeric characters (among non-whitespace) the
# decode is treated as noise.
MIN_ALPHANUMERIC_RATIO = 0.3

# A single non-whitespace character repeated more than this many times in a
# row is treated as a degenerate decode.
MAX_CHARACTER_RUN = 10

# Markers llama.cpp prints at the end of generation
END_OF_TEXT_MARKERS = ("[end of text]", "<|endoftext|>", "</s>", "<|eot_id|>")

_ERROR_PLACEHOLDER = re.compile(
    r"^\[[^\]]*(error|not loaded|not available|not configured|not readable|stub response)[^\]]*\]",
    re.IGNORECASE,
)


class LlamaOutputFilter:
    """
    Line-by-line filter for llama.cpp's merged output stream.

    A diagnostic is a line that starts with one of the configured prefixes.
    Before capture, diagnostics, blank lines and interactive prompt markers
    ('>') are dropped; capture starts at the first other line, normally the
    echoed prompt. Once capturing, lines are kept verbatim so the echo can be
    matched against the prompt. Diagnostic-looking lines after that point
    are held back and only dropped if nothing but diagnostics and blank
    lines follows them (the timing report llama.cpp prints on exit).

    Example:
        output_filter = LlamaOutputFilter(config.log_filter_patterns)
        for line in process.stdout:
            output_filter.feed(line)
        text = output_filter.text()
    """

    def __init__(self, patterns: Iterable[str] = DEFAULT_LOG_FILTER_PATTERNS):
        self.patterns = tuple(patterns)
        self.capturing = False
        self._skipped = 0
        self._lines: list[str] = []
        self._held: list[str] = []

    @property
    def skipped(self) -> int:
        """Diagnostic lines dropped so far, held trailing lines included."""
        return self._skipped + sum(1 for line in self._held if line.strip())

    def is_log_line(self, line: str) -> bool:
        """True if the line is an engine diagnostic rather than model output."""
        return bool(self.patterns) and line.lstrip().startswith(self.patterns)

    def feed(self, line: str) -> bool:
        """
        Offer one output line to the filter.

        Args:
            line: Raw line, with or without trailing newline

        Returns:
            bool: True if the line was kept
        """
        line = line.rstrip("\r\n")

        if not self.capturing:
            if self.is_log_line(line):
                self._skipped += 1
                return False
            if not line.strip() or line.startswith(">"):
                return False
            self.capturing = True
            self._lines.append(line)
            return True

        if self.is_log_line(line) or (self._held and not line.strip()):
            self._held.append(line)
            return False

        if self._held:
            # More output followed, so the held lines were part of it
            self._lines.extend(self._held)
            self._held.clear()
        self._lines.append(line)
        return True

    def text(self) -> str:
        """Captured output, end-of-text markers removed, whitespace trimmed."""
        text = "\n".join(self._lines)
        for marker in END_OF_TEXT_MARKERS:
            text = text.replace(marker, "")
        return text.strip()


def strip_prompt_echo(text: str, prompt: str) -> str:
    """
    Remove the prompt from the start of a completion if the engine echoed it.

    Args:
        text: Captured completion
        prompt: Prompt that was sent

    Returns:
        str: Completion without the echoed prompt
    """
    if prompt and text.startswith(prompt):
        debug_log(f"[SANITIZER] Removed echoed prompt ({len(prompt)} chars)")
        return text[len(prompt):].strip()

    # The engine may trim surrounding whitespace before echoing
    stripped_prompt = prompt.strip() if prompt else ""
    if stripped_prompt and text.startswith(stripped_prompt):
        debug_log(f"[SANITIZER] Removed echoed prompt ({len(stripped_prompt)} chars)")
        return text[len(stripped_prompt):].strip()

    return text


def alphanumeric_ratio(text: str) -> float:
    """Share of alphanumeric characters among non-whitespace characters."""
    visible = [c for c in text if not c.isspace()]
    if not visible:
        return 0.0
    return sum(1 for c in visible if c.isalnum()) / len(visible)


def longest_character_run(text: str) -> int:
    """Length of the longest run of one repeated non-whitespace character."""
    longest = 0
    current = 0
    previous = None
    for c in text:
        if c.isspace():
            current = 0
        elif c == previous:
            current += 1
        else:
            current = 1
        longest = max(longest, current)
        previous = c
    return longest


def is_gibberish(text: str | None) -> bool:
    """
    Heuristic readability screen for tensor-runtime output.

    Encoder models (e.g. BERT) loaded as if they could generate produce
    punctuation soup, token placeholders or one token repeated; none of that
    should be shown to a user.

    Args:
        text: Decoded model output

    Returns:
        bool: True if the text should be discarded
    """
    if not text or not text.strip():
        return True

    if "[TOKEN_" in text:
        debug_log("[SANITIZER] Gibberish detected: unresolved token placeholders")
        return True

    ratio = alphanumeric_ratio(text)
    if ratio < MIN_ALPHANUMERIC_RATIO:
        debug_log(f"[SANITIZER] Gibberish detected: alphanumeric ratio = {ratio:.2f}")
        return True

    run = longest_character_run(text)
    if run > MAX_CHARACTER_RUN:
        debug_log(f"[SANITIZER] Gibberish detected: max character repeat = {run}")
        return True

    return False


def is_error_placeholder(text: str | None) -> bool:
    """
    True if the text is an error string returned in place of a completion.

    Covers bracketed markers such as "[Inference error: ...]" and the
    "Error: ..." bodies the AI microservice sends on failure.
    """
    if text is None:
        return True
    stripped = text.strip()
    if not stripped:
        return False
    return bool(_ERROR_PLACEHOLDER.match(stripped)) or stripped.startswith("Error:")
