"""
Position Mapper
===============
Maps a flat character offset into a source text back to its 1-based line
number and a short snippet of surrounding context.

Usage:
    from markdown_spellcheck.position import locate

    record = locate("Hello wrold.\\nSecond lien here.", 20, 4)
    # ContextRecord(line_number=2, snippet='Second lien here.')

Out-of-range input is clamped, never raised:
- offset below 0 is treated as 0, offset past the end as len(text)
- a negative match length is treated as 0
- the match end is cut at len(text)
offset == len(text) maps to the last line, which is an empty line when the
text ends with a newline.
"""

import re
from bisect import bisect_right
from typing import List, Tuple

from config_logging import DEFAULT_CONTEXT_CHARS
from .models import ContextRecord

__version__ = "1.0.0"

ELLIPSIS = "..."

_LINE_BREAKS = re.compile(r'[\r\n]+')


class LineIndex:
    """
    Line start offsets for one text, so repeated lookups are O(log n).

    A newline character belongs to the line it terminates.
    """

    def __init__(self, text: str):
        self.text = text or ""
        self._starts: List[int] = [0] + [m.end() for m in re.finditer('\n', self.text)]

    @property
    def line_count(self) -> int:
        return len(self._starts)

    def clamp(self, offset: int) -> int:
        """Clamp an offset into [0, len(text)]."""
        return max(0, min(offset, len(self.text)))

    def line_number(self, offset: int) -> int:
        """1-based line containing offset (after clamping)."""
        return bisect_right(self._starts, self.clamp(offset))

    def line_bounds(self, line_number: int) -> Tuple[int, int]:
        """
        (start, end) of a line's content, newline excluded.

        line_number is clamped to [1, line_count].
        """
        line_number = max(1, min(line_number, self.line_count))
        start = self._starts[line_number - 1]
        if line_number < self.line_count:
            end = self._starts[line_number] - 1
        else:
            end = len(self.text)
        return start, end

    def locate(
        self,
        offset: int,
        match_length: int,
        context_chars: int = DEFAULT_CONTEXT_CHARS
    ) -> ContextRecord:
        """
        Line number and snippet for the match [offset, offset + match_length).

        The snippet keeps up to context_chars characters on each side of the
        match, never crosses into lines the match does not touch, and is
        marked with an ellipsis on each side where the line was cut.
        """
        context_chars = max(0, context_chars)
        start = self.clamp(offset)
        match_end = min(len(self.text), start + max(0, match_length))

        first_line = self.line_number(start)
        last_line = self.line_number(max(start, match_end - 1))

        line_start, _ = self.line_bounds(first_line)
        _, line_end = self.line_bounds(last_line)

        window_start = max(line_start, start - context_chars)
        window_end = min(line_end, match_end + context_chars)
        window_end = max(window_end, window_start)

        snippet = _LINE_BREAKS.sub(' ', self.text[window_start:window_end])
        if window_start > line_start:
            snippet = ELLIPSIS + snippet
        if window_end < line_end:
            snippet = snippet + ELLIPSIS

        return ContextRecord(line_number=first_line, snippet=snippet)


def locate(
    text: str,
    offset: int,
    match_length: int,
    context_chars: int = DEFAULT_CONTEXT_CHARS
) -> ContextRecord:
    """
    Map an offset in text to its line number and a context snippet.

    Args:
        text: Full source text
        offset: Zero-based character offset of the match
        match_length: Length of the match in characters
        context_chars: Characters of context kept on each side of the match

    Returns:
        ContextRecord with a 1-based line_number and the snippet
    """
    return LineIndex(text).locate(offset, match_length, context_chars)


def line_number_at(text: str, offset: int) -> int:
    """1-based line number containing offset."""
    return LineIndex(text).line_number(offset)
