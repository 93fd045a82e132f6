"""PromptClassifier for spotting terminal output that waits on a human.

Patterns are checked in priority order and the first hit wins. Only the last
few non-blank lines of a capture are classified, so a question that scrolled
up long ago does not count.
"""

import logging
import re
import threading

logger = logging.getLogger(__name__)

# Lines of the capture tail that get classified
TAIL_LINES = 5

# (pattern, flags) in priority order
DEFAULT_PATTERNS: list[tuple[str, int]] = [
    # Yes/No prompts
    (r"\[y/n\]", re.IGNORECASE),
    (r"\(y/n\)", re.IGNORECASE),
    # Questions
    (r"\?\s*$", 0),
    (r"Do you want to", 0),
    # Action prompts
    (r"press enter", re.IGNORECASE),
    (r"Choose.*:\s*$", 0),
    (r"Select.*:\s*$", 0),
    (r"Enter.*:\s*$", 0),
    (r"Type.*:\s*$", 0),
    # Waiting states
    (r"waiting for.*input", re.IGNORECASE),
    # Confirmations
    (r"continue\?", re.IGNORECASE),
    (r"proceed\?", re.IGNORECASE),
    (r"confirm", 0),
    # CLI selectors, e.g. "❯ 1. Yes"
    (r"❯\s+\d+\.", 0),
    (r"^\s*❯", 0),
    (r">>\s*$", 0),
    # Claude Code permission prompts
    (r"Create file", 0),
    (r"Edit file", 0),
    (r"Run command", 0),
    (r"Allow once", 0),
    (r"Allow all", 0),
]


class InvalidPatternError(ValueError):
    """Raised when a runtime-supplied pattern does not compile."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        super().__init__(f"invalid prompt pattern {pattern!r}: {reason}")


def tail_lines(text: str, n: int = TAIL_LINES) -> str:
    """Return the last n lines of text after trimming surrounding whitespace.

    tmux pads captures with blank rows below the cursor, so trimming first
    makes "last n lines" mean the last n lines of real output.
    """
    lines = text.strip().split("\n")
    return "\n".join(lines[-n:])


class PromptClassifier:
    """Ordered first-match regex classifier for input prompts.

    Patterns are compiled once. add_pattern() only ever appends, and shares
    a lock with evaluation so it is safe to call while the monitor runs.
    """

    def __init__(self, patterns: list[tuple[str, int]] | None = None):
        """Initialize the classifier.

        Args:
            patterns: (regex, flags) pairs in priority order. Defaults to
                DEFAULT_PATTERNS.
        """
        self._lock = threading.Lock()
        self._compiled: list[re.Pattern[str]] = [
            re.compile(pattern, flags)
            for pattern, flags in (DEFAULT_PATTERNS if patterns is None else patterns)
        ]

    @property
    def patterns(self) -> list[str]:
        """Pattern sources in priority order."""
        with self._lock:
            return [p.pattern for p in self._compiled]

    def add_pattern(self, pattern: str, flags: int = 0) -> None:
        """Append a pattern at the lowest priority.

        Args:
            pattern: Regular expression source.
            flags: re module flags.

        Raises:
            InvalidPatternError: If the pattern does not compile. The
                existing patterns are untouched.
        """
        try:
            compiled = re.compile(pattern, flags)
        except re.error as e:
            raise InvalidPatternError(pattern, str(e)) from e

        with self._lock:
            self._compiled.append(compiled)
        logger.debug(f"Added prompt pattern {pattern!r}")

    def _first_match(self, text: str) -> re.Match[str] | None:
        with self._lock:
            for compiled in self._compiled:
                match = compiled.search(text)
                if match:
                    return match
        return None

    def matches(self, text: str) -> bool:
        """Return True if any pattern matches text."""
        return self._first_match(text) is not None

    def matched_pattern(self, text: str) -> str:
        """Return the text matched by the first matching pattern, or ""."""
        match = self._first_match(text)
        return match.group(0) if match else ""
