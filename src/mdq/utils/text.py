"""Text helpers: tokenizing, stemming and snippets."""

from __future__ import annotations

import re
from typing import Collection, Iterable, Iterator, List

import snowballstemmer

WORD_PATTERN = re.compile(r"\w+", re.UNICODE)
DEFAULT_LANGUAGE = "english"
DEFAULT_MIN_LENGTH = 2


class TextAnalyzer:
    """Lowercase, split on non-word characters, drop short tokens, stem.

    The same analyzer instance is used for indexing and for querying so both
    sides share one normal form.
    """

    def __init__(
        self,
        *,
        language: str = DEFAULT_LANGUAGE,
        min_length: int = DEFAULT_MIN_LENGTH,
    ) -> None:
        self.language = language
        self.min_length = min_length
        self._stemmer = snowballstemmer.stemmer(language)

    def tokenize(self, text: str) -> Iterator[str]:
        for match in WORD_PATTERN.finditer(text):
            token = match.group(0).lower()
            if len(token) >= self.min_length:
                yield token

    def stem(self, word: str) -> str:
        return self._stemmer.stemWord(word.lower())

    def analyze(self, text: str) -> List[str]:
        """Return the stemmed tokens of ``text`` in order."""
        return [self.stem(token) for token in self.tokenize(text)]


def normalize_keyword(value: str) -> str:
    """Normal form of structured values: trimmed and lowercased, never stemmed."""
    return value.strip().lower()


def normalize_whitespace(lines: Iterable[str]) -> str:
    """Collapse whitespace and join lines."""
    return " ".join(line.strip() for line in lines if line.strip())


def make_snippet(
    text: str,
    analyzer: TextAnalyzer,
    stems: Collection[str],
    *,
    max_chars: int = 160,
) -> str:
    """Return a window of ``text`` around the first word matching ``stems``.

    Falls back to the start of the text when nothing matches.
    """
    if not text:
        return ""

    start = 0
    if stems:
        for match in WORD_PATTERN.finditer(text):
            if analyzer.stem(match.group(0)) in stems:
                start = max(match.start() - max_chars // 4, 0)
                break

    window = text[start : start + max_chars * 2]
    snippet = normalize_whitespace(window.splitlines())
    if len(snippet) > max_chars:
        snippet = snippet[:max_chars].rstrip() + "…"
    if start > 0:
        snippet = "…" + snippet
    return snippet
