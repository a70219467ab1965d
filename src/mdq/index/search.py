"""Boolean query evaluation over the term index."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

import numpy as np

from mdq.index.mapping import DEFAULT_FIELD, STEMMED_FIELDS
from mdq.index.storage import SQLiteTermIndex
from mdq.query.language import And, FieldFilter, Not, Or, Query, Term, iter_leaves, parse_query
from mdq.utils.text import TextAnalyzer, make_snippet, normalize_keyword

LOGGER = logging.getLogger(__name__)

Matches = Dict[int, float]


@dataclass(slots=True)
class SearchResult:
    path: Path
    title: str
    score: float
    snippet: str = ""


class Searcher:
    """High-level API to run query trees against a term index."""

    def __init__(self, store: SQLiteTermIndex, analyzer: TextAnalyzer) -> None:
        self.store = store
        self.analyzer = analyzer

    def search(self, query: Union[Query, str], *, top_k: int = 10) -> List[SearchResult]:
        if isinstance(query, str):
            query = parse_query(query)
        LOGGER.debug("Evaluating %s", query)

        evaluation = _Evaluation(self)
        matches = evaluation.evaluate(query)
        if not matches:
            return []

        ids = list(matches)
        rows = self.store.documents(ids)
        paths = np.array([rows[doc_id]["path"] for doc_id in ids])
        scores = np.array([matches[doc_id] for doc_id in ids], dtype="float64")
        # score descending, then path ascending
        order = np.lexsort((paths, -scores))[:top_k]

        stems = self._snippet_stems(query)
        results: List[SearchResult] = []
        for idx in order:
            row = rows[ids[idx]]
            results.append(
                SearchResult(
                    path=Path(row["path"]),
                    title=row["title"] or "",
                    score=float(scores[idx]),
                    snippet=make_snippet(row["body"] or "", self.analyzer, stems),
                )
            )
        return results

    def normalize(self, leaf: Union[Term, FieldFilter]) -> tuple[str, List[str]]:
        """Return the index field and normalised terms a leaf refers to."""
        if isinstance(leaf, Term):
            return DEFAULT_FIELD, self.analyzer.analyze(leaf.text)
        if leaf.field in STEMMED_FIELDS:
            return leaf.field, self.analyzer.analyze(leaf.value)
        keyword = normalize_keyword(leaf.value)
        return leaf.field, [keyword] if keyword else []

    def _snippet_stems(self, query: Query) -> Set[str]:
        stems: Set[str] = set()
        for leaf, negated in iter_leaves(query):
            if negated:
                continue
            field, terms = self.normalize(leaf)
            if field in STEMMED_FIELDS:
                stems.update(terms)
        return stems


class _Evaluation:
    """Set-based evaluation of one query; caches the document universe."""

    def __init__(self, searcher: Searcher) -> None:
        self.searcher = searcher
        self.store = searcher.store
        self._total = self.store.document_count()
        self._universe: Optional[Set[int]] = None

    def evaluate(self, node: Query) -> Matches:
        if isinstance(node, (Term, FieldFilter)):
            return self._leaf(node)
        if isinstance(node, And):
            left = self.evaluate(node.left)
            if not left:
                return {}
            right = self.evaluate(node.right)
            return {doc_id: left[doc_id] + right[doc_id] for doc_id in left.keys() & right.keys()}
        if isinstance(node, Or):
            merged = dict(self.evaluate(node.left))
            for doc_id, score in self.evaluate(node.right).items():
                merged[doc_id] = merged.get(doc_id, 0.0) + score
            return merged
        if isinstance(node, Not):
            excluded = self.evaluate(node.expr)
            return {doc_id: 0.0 for doc_id in self.universe() - excluded.keys()}
        raise TypeError(f"Unsupported query node: {node!r}")

    def universe(self) -> Set[int]:
        if self._universe is None:
            self._universe = self.store.all_document_ids()
        return self._universe

    def _leaf(self, leaf: Union[Term, FieldFilter]) -> Matches:
        field, terms = self.searcher.normalize(leaf)
        if not terms:
            return {}
        matches: Optional[Matches] = None
        for term in terms:
            postings = self.store.postings(field, term)
            idf = math.log(1.0 + self._total / len(postings)) if postings else 0.0
            scored = {doc_id: frequency * idf for doc_id, frequency in postings.items()}
            if matches is None:
                matches = scored
            else:
                matches = {doc_id: matches[doc_id] + scored[doc_id] for doc_id in matches.keys() & scored.keys()}
            if not matches:
                return {}
        return matches or {}
