"""
Spelling Oracle for Markdown
============================
Finds misspelled words in markdown text and reports each occurrence with
its character offset into the original text.

Features:
- SymSpell frequency dictionary (82K+ words, bundled with symspellpy)
- Markdown masking: code, URLs, link targets, HTML and front matter are
  blanked out before tokenizing, so offsets stay aligned with the source
- Numbers and acronyms skipped by default
- Extra dictionary words per oracle

Requires: pip install symspellpy
"""

import re
from importlib import resources
from typing import Dict, Iterable, List, Optional, Protocol, Set, Tuple

from config_logging import get_logger
from .models import Misspelling

__version__ = "1.0.0"

logger = get_logger('markdown_spellcheck.spelling')


class SpellingOracle(Protocol):
    """Anything that can list the misspellings in a text, in text order."""

    def check(self, text: str) -> List[Misspelling]:
        ...


# =============================================================================
# MARKDOWN MASKING
# =============================================================================

# Whole matches are blanked
MASK_PATTERNS = [
    re.compile(r'\A---[ \t]*\n.*?\n---[ \t]*(?:\n|\Z)', re.DOTALL),      # Front matter
    re.compile(r'^[ \t]*(`{3,}|~{3,})[^\n]*\n.*?(?:^[ \t]*\1[ \t]*$|\Z)',
               re.DOTALL | re.MULTILINE),                                 # Fenced code
    re.compile(r'<!--.*?-->', re.DOTALL),                                # HTML comments
    re.compile(r'(`+)(?:[^`\n]|\n(?![ \t]*\n))(?:[^\n]|\n(?![ \t]*\n))*?\1'),  # Inline code, one paragraph
    re.compile(r'</?[A-Za-z][^>\n]*>'),                                  # HTML tags
    re.compile(r'^[ \t]{0,3}\[[^\]\n]+\]:[^\n]*$', re.MULTILINE),        # Link reference definitions
    re.compile(r'(?:https?|ftp)://[^\s)>\]]+'),                          # URLs
    re.compile(r'\bwww\.[^\s)>\]]+'),
    re.compile(r'[\w.+-]+@[\w-]+(?:\.[\w-]+)+'),                         # Email addresses
]

# Only the target group is blanked: the link text stays checkable
LINK_TARGET = re.compile(r'\]\(([^)\n]*)\)')
REFERENCE_LABEL = re.compile(r'\]\[([^\]\n]*)\]')

INDENTED_CODE = re.compile(r'^(?: {4}|\t)')


def _indented_code_spans(text: str) -> List[Tuple[int, int]]:
    """Indented code blocks: indented lines that follow a blank line."""
    spans = []
    offset = 0
    previous_blank = True
    in_block = False
    for line in text.split('\n'):
        blank = not line.strip()
        if INDENTED_CODE.match(line) and not blank and (previous_blank or in_block):
            spans.append((offset, offset + len(line)))
            in_block = True
        elif not blank:
            in_block = False
        previous_blank = blank
        offset += len(line) + 1
    return spans


def mask_markdown(text: str) -> str:
    """
    Blank out the parts of markdown that are not prose.

    Every masked character except newlines becomes a space, so the result
    has the same length and line structure as the input.
    """
    if not text:
        return ""

    spans: List[Tuple[int, int]] = []
    for pattern in MASK_PATTERNS:
        spans.extend(m.span() for m in pattern.finditer(text))
    for pattern in (LINK_TARGET, REFERENCE_LABEL):
        spans.extend(m.span(1) for m in pattern.finditer(text))
    spans.extend(_indented_code_spans(text))

    chars = list(text)
    for start, end in spans:
        for i in range(start, end):
            if chars[i] != '\n':
                chars[i] = ' '
    return ''.join(chars)


# =============================================================================
# SYMSPELL ORACLE
# =============================================================================

class SymSpellOracle:
    """
    SymSpell-backed spelling oracle for markdown documents.

    A word is correct when it (or its stem before a contraction suffix) is
    in the frequency dictionary or in the extra words.
    """

    FREQUENCY_DICT = "frequency_dictionary_en_82_765.txt"

    # Underscores join word parts but never start or end a token: `_word_` is emphasis
    TOKEN_PATTERN = re.compile(r"[A-Za-z0-9]+(?:_+[A-Za-z0-9]+)*(?:['’][A-Za-z]+)*")

    CONTRACTION_SUFFIXES = ("n't", "'s", "'re", "'ve", "'ll", "'d", "'m", "'t")

    # Identifier-like tokens are never prose
    SKIP_PATTERNS = [
        r'_',                   # snake_case identifiers
        r'^[a-z]+[A-Z]',        # camelCase
        r'^[A-Z][a-z]+[A-Z]',   # CamelCase
    ]

    ACRONYM_PATTERN = re.compile(r"^[A-Z]{2,}(?:['’]?s)?$")
    DIGIT_PATTERN = re.compile(r'\d')

    def __init__(
        self,
        max_edit_distance: int = 2,
        prefix_length: int = 7,
        extra_words: Optional[Iterable[str]] = None,
        ignore_numbers: bool = True,
        ignore_acronyms: bool = True,
        max_suggestions: int = 3
    ):
        """
        Initialize the oracle and load the dictionary.

        Args:
            max_edit_distance: Maximum edit distance for suggestions
            prefix_length: SymSpell prefix length
            extra_words: Additional words to accept
            ignore_numbers: Skip tokens containing digits
            ignore_acronyms: Skip all-caps tokens
            max_suggestions: Suggestions kept per misspelling
        """
        from symspellpy import SymSpell, Verbosity

        self._Verbosity = Verbosity
        self.max_edit_distance = max_edit_distance
        self.ignore_numbers = ignore_numbers
        self.ignore_acronyms = ignore_acronyms
        self.max_suggestions = max_suggestions

        self._sym_spell = SymSpell(
            max_dictionary_edit_distance=max_edit_distance,
            prefix_length=prefix_length
        )
        dict_path = resources.files("symspellpy") / self.FREQUENCY_DICT
        with resources.as_file(dict_path) as path:
            if not self._sym_spell.load_dictionary(str(path), term_index=0, count_index=1):
                raise RuntimeError(f"Could not load SymSpell dictionary {self.FREQUENCY_DICT}")

        self._extra_words: Set[str] = set()
        self._skip_patterns = [re.compile(p) for p in self.SKIP_PATTERNS]
        self._cache: Dict[str, Optional[List[str]]] = {}

        for word in extra_words or ():
            self.add_word(word)

        logger.debug("SymSpell dictionary loaded", words=len(self._sym_spell.words))

    def add_word(self, word: str):
        """Accept a word from now on."""
        word = word.strip().lower()
        if word:
            self._extra_words.add(word)
            self._cache.pop(word, None)

    def _should_skip(self, token: str) -> bool:
        if len(token) < 2:
            return True
        if self.ignore_numbers and self.DIGIT_PATTERN.search(token):
            return True
        if self.ignore_acronyms and self.ACRONYM_PATTERN.match(token):
            return True
        return any(p.search(token) for p in self._skip_patterns)

    def _is_known(self, word: str) -> bool:
        return word in self._extra_words or word in self._sym_spell.words

    def _stem(self, word: str) -> str:
        for suffix in self.CONTRACTION_SUFFIXES:
            if word.endswith(suffix) and len(word) > len(suffix):
                return word[:-len(suffix)]
        return word

    def suggestions_for(self, token: str) -> Optional[List[str]]:
        """
        None if the token is spelled correctly, else its suggestions.

        Results are cached per lowercased token.
        """
        word = token.lower().replace('’', "'")
        if word in self._cache:
            return self._cache[word]

        if self._is_known(word) or self._is_known(self._stem(word)):
            result = None
        else:
            lookups = self._sym_spell.lookup(
                word,
                self._Verbosity.CLOSEST,
                max_edit_distance=self.max_edit_distance
            )
            result = [s.term for s in lookups[:self.max_suggestions]]

        self._cache[word] = result
        return result

    def check(self, text: str) -> List[Misspelling]:
        """
        Every misspelled occurrence in text, in text order.

        Offsets index into text itself, not the masked copy.
        """
        if not text:
            return []

        masked = mask_markdown(text)
        misspellings = []
        for match in self.TOKEN_PATTERN.finditer(masked):
            token = match.group()
            if self._should_skip(token):
                continue
            suggestions = self.suggestions_for(token)
            if suggestions is not None:
                misspellings.append(Misspelling(
                    word=token,
                    offset=match.start(),
                    suggestions=suggestions
                ))
        return misspellings
