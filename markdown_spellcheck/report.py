"""
Report Builder
==============
Turns oracle output for one file into markdown table rows.

Steps, in order:
1. Drop misspellings whose lowercased word is in the ignore set
2. Map each remaining one to a line number and snippet
3. Escape the snippet for the markdown renderer
4. Keep oracle order

An empty result means no report is needed for the file.
"""

from typing import Iterable, List, Optional, AbstractSet

from config_logging import DEFAULT_CONTEXT_CHARS
from .models import Misspelling, ReportRow
from .position import LineIndex

__version__ = "1.0.0"

# Encoded forms for characters the downstream renderer would treat as markup
LEFT_SQUARE_BRACKET = "&#91;"
VERTICAL_BAR = "&#124;"

TABLE_HEADER = "| Line | Typo |\n| ---- | ---- |"


def sanitize_snippet(snippet: str) -> str:
    """Escape every `[` (and `|`, which would split the table cell)."""
    return snippet.replace("[", LEFT_SQUARE_BRACKET).replace("|", VERTICAL_BAR)


def filter_ignored(
    misspellings: Iterable[Misspelling],
    ignore_words: AbstractSet[str]
) -> List[Misspelling]:
    """Misspellings whose lowercased word is not in ignore_words, order kept."""
    return [m for m in misspellings if m.word.lower() not in ignore_words]


def build_rows(
    text: str,
    misspellings: Iterable[Misspelling],
    ignore_words: AbstractSet[str] = frozenset(),
    context_chars: int = DEFAULT_CONTEXT_CHARS
) -> Optional[List[ReportRow]]:
    """
    Build report rows for one file.

    Args:
        text: The file's full content
        misspellings: Oracle output, in oracle order
        ignore_words: Lowercased words to leave out
        context_chars: Snippet context on each side of a typo

    Returns:
        Rows in oracle order, or None when nothing is left to report
    """
    presentable = filter_ignored(misspellings, ignore_words)
    if not presentable:
        return None

    index = LineIndex(text)
    rows = []
    for misspelling in presentable:
        record = index.locate(misspelling.offset, misspelling.length, context_chars)
        rows.append(ReportRow(
            line_number=record.line_number,
            rendered_snippet=sanitize_snippet(record.snippet)
        ))
    return rows


def render_report(path: str, rows: List[ReportRow], file_url: Optional[str] = None) -> str:
    """
    Render the typo table for a file.

    The heading links to file_url when one is given.
    """
    title = f"[{path}]({file_url})" if file_url else path
    body = "\n".join(row.to_markdown() for row in rows)
    return f"### Typos for {title}\n\n{TABLE_HEADER}\n{body}\n"
