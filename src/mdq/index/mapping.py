"""Mapping of parsed notes to indexable (field, term) pairs.

Free text (body and title) is tokenized and stemmed into the default field so
that a bare query word matches either. Structured values (tags, dates and any
other frontmatter key) are lowercased and indexed verbatim under their own
field, which is what makes ``tag:foo`` an exact filter.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Iterator, Mapping, Tuple

from mdq.models import Document
from mdq.utils.text import TextAnalyzer, normalize_keyword

DEFAULT_FIELD = ""
TITLE_FIELD = "title"
TAG_FIELD = "tag"
CREATED_FIELD = "created"
MODIFIED_FIELD = "modified"

# Fields whose values go through the stemming analyzer.
STEMMED_FIELDS = frozenset({DEFAULT_FIELD, TITLE_FIELD})
RESERVED_FIELDS = frozenset({TITLE_FIELD, TAG_FIELD, CREATED_FIELD, MODIFIED_FIELD})
FIELD_ALIASES = {"tags": TAG_FIELD}

FIELD_NAME_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_-]*\Z")


@dataclass(frozen=True)
class TermSet:
    """Field name -> {term: frequency within the document}."""

    fields: Mapping[str, Mapping[str, int]] = field(default_factory=dict)

    def terms(self, field_name: str) -> FrozenSet[str]:
        return frozenset(self.fields.get(field_name, {}))

    def __iter__(self) -> Iterator[Tuple[str, str, int]]:
        for field_name in sorted(self.fields):
            for term, frequency in sorted(self.fields[field_name].items()):
                yield field_name, term, frequency

    def __len__(self) -> int:
        return sum(len(terms) for terms in self.fields.values())


def canonical_field(name: str) -> str:
    lowered = name.lower()
    return FIELD_ALIASES.get(lowered, lowered)


def build_term_set(document: Document, analyzer: TextAnalyzer) -> TermSet:
    """Produce the term set of ``document``; deterministic for equal input."""
    builder: Dict[str, Counter] = {}

    def add(field_name: str, terms: Iterable[str]) -> None:
        counter = builder.setdefault(field_name, Counter())
        counter.update(term for term in terms if term)

    title_terms = analyzer.analyze(document.title)
    add(TITLE_FIELD, title_terms)
    add(DEFAULT_FIELD, title_terms)
    add(DEFAULT_FIELD, analyzer.analyze(document.body))
    add(TAG_FIELD, (normalize_keyword(tag) for tag in document.tags))

    if document.created is not None:
        add(CREATED_FIELD, [document.created.date().isoformat()])
    if document.modified is not None:
        add(MODIFIED_FIELD, [document.modified.date().isoformat()])

    for key, value in document.metadata.items():
        field_name = canonical_field(key)
        if field_name in RESERVED_FIELDS or not FIELD_NAME_PATTERN.match(field_name):
            continue
        values = value if isinstance(value, list) else [value]
        add(field_name, (normalize_keyword(item) for item in values))

    frozen = {
        name: MappingProxyType(dict(counter))
        for name, counter in builder.items()
        if counter
    }
    return TermSet(fields=MappingProxyType(frozen))
