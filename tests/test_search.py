"""Tests for query evaluation against a real index."""

from __future__ import annotations

from pathlib import Path

import pytest

from mdq.errors import QuerySyntaxError
from mdq.index.indexer import Indexer
from mdq.index.mapping import TermSet
from mdq.index.search import SearchResult, Searcher
from mdq.index.storage import SQLiteTermIndex
from mdq.models import DocumentMetadata
from mdq.query.language import FieldFilter, Term


def names(results: list[SearchResult]) -> set[str]:
    return {result.path.name for result in results}


@pytest.fixture
def searcher(write_note, build_index, tmp_path: Path) -> Searcher:
    write_note("park.md", title="Park", tags=["foo", "bar"], body="We went running in the park.")
    write_note("garden.md", title="Gardening", tags=["baz"], body="Cats and dogs everywhere.")
    write_note("apples.md", title="Apples", tags=["foo"], body="Apples and pears.", extra="author: Jane Doe")
    return build_index(tmp_path / "notes")


class TestTagFilters:
    def test_single_tag(self, searcher: Searcher) -> None:
        assert names(searcher.search("tag:foo")) == {"park.md", "apples.md"}

    def test_tag_conjunction(self, searcher: Searcher) -> None:
        assert names(searcher.search("tag:foo AND tag:bar")) == {"park.md"}

    def test_other_tag_excludes(self, searcher: Searcher) -> None:
        assert "park.md" not in names(searcher.search("tag:baz"))
        assert names(searcher.search("tag:baz")) == {"garden.md"}

    def test_tag_match_is_case_insensitive(self, searcher: Searcher) -> None:
        assert names(searcher.search("tag:FOO")) == {"park.md", "apples.md"}

    def test_tag_is_not_stemmed(self, searcher: Searcher) -> None:
        assert searcher.search("tag:foos") == []

    def test_tags_alias(self, searcher: Searcher) -> None:
        assert names(searcher.search("tags:baz")) == {"garden.md"}


class TestTextQueries:
    def test_stemming_symmetry(self, searcher: Searcher) -> None:
        assert names(searcher.search("run")) == {"park.md"}
        assert names(searcher.search("runs")) == {"park.md"}

    def test_bare_word_matches_title(self, searcher: Searcher) -> None:
        assert names(searcher.search("gardening")) == {"garden.md"}

    def test_title_field(self, searcher: Searcher) -> None:
        assert names(searcher.search("title:garden")) == {"garden.md"}
        assert searcher.search("title:cats") == []

    def test_metadata_field(self, searcher: Searcher) -> None:
        assert names(searcher.search('author:"jane doe"')) == {"apples.md"}

    def test_unknown_field_is_empty(self, searcher: Searcher) -> None:
        assert searcher.search("nosuch:foo") == []

    def test_multi_word_term_requires_all_words(self, searcher: Searcher) -> None:
        assert names(searcher.search('"cats dogs"')) == {"garden.md"}
        assert searcher.search('"cats pears"') == []

    def test_term_without_tokens_matches_nothing(self, searcher: Searcher) -> None:
        assert searcher.search("a") == []

    def test_accepts_parsed_query(self, searcher: Searcher) -> None:
        assert names(searcher.search(FieldFilter("tag", "bar"))) == {"park.md"}
        assert names(searcher.search(Term("pears"))) == {"apples.md"}


class TestBooleanSemantics:
    @pytest.fixture
    def letters(self, write_note, build_index, tmp_path: Path) -> Searcher:
        write_note("d1.md", title="one", body="alpha")
        write_note("d2.md", title="two", body="beta")
        write_note("d3.md", title="three", body="gamma")
        write_note("d4.md", title="four", body="beta gamma")
        return build_index(tmp_path / "notes")

    def test_or_and_precedence(self, letters: Searcher) -> None:
        assert names(letters.search("alpha OR beta AND gamma")) == {"d1.md", "d4.md"}

    def test_not_and_precedence(self, letters: Searcher) -> None:
        assert names(letters.search("NOT alpha AND beta")) == {"d2.md", "d4.md"}

    def test_implicit_and(self, letters: Searcher) -> None:
        assert names(letters.search("beta gamma")) == {"d4.md"}

    def test_pure_negation(self, letters: Searcher) -> None:
        assert names(letters.search("NOT beta")) == {"d1.md", "d3.md"}

    def test_grouping(self, letters: Searcher) -> None:
        assert names(letters.search("(alpha OR beta) AND gamma")) == {"d4.md"}


class TestRanking:
    def test_more_occurrences_rank_higher(self, write_note, build_index, tmp_path: Path) -> None:
        write_note("once.md", title="x", body="zebra")
        write_note("thrice.md", title="y", body="zebra zebra zebra")
        write_note("none.md", title="z", body="horse")

        results = build_index(tmp_path / "notes").search("zebra")

        assert [r.path.name for r in results] == ["thrice.md", "once.md"]
        assert results[0].score > results[1].score

    def test_ties_are_ordered_by_path(self, write_note, build_index, tmp_path: Path) -> None:
        write_note("b.md", tags=["same"])
        write_note("a.md", tags=["same"])

        results = build_index(tmp_path / "notes").search("tag:same")

        assert [r.path.name for r in results] == ["a.md", "b.md"]

    def test_top_k(self, searcher: Searcher) -> None:
        assert len(searcher.search("tag:foo", top_k=1)) == 1


class TestResults:
    def test_result_fields(self, searcher: Searcher, tmp_path: Path) -> None:
        (result,) = searcher.search("run")

        assert result.path == (tmp_path / "notes" / "park.md").resolve()
        assert result.title == "Park"
        assert result.score > 0
        assert "running" in result.snippet

    def test_empty_result_is_not_an_error(self, searcher: Searcher) -> None:
        assert searcher.search("zzzunmatched") == []


class TestIdempotence:
    def test_reindexing_does_not_duplicate(self, write_note, build_index, index_path, tmp_path: Path) -> None:
        write_note("park.md", tags=["foo"], body="running")
        notes = tmp_path / "notes"

        first = build_index(notes)
        postings_before = first.store.connection.execute("SELECT COUNT(*) FROM postings").fetchone()[0]

        with SQLiteTermIndex(index_path) as store:
            Indexer(store, first.analyzer).index([notes], force=True)

        second = build_index(notes)
        postings_after = second.store.connection.execute("SELECT COUNT(*) FROM postings").fetchone()[0]

        assert postings_after == postings_before
        assert len(second.search("tag:foo")) == 1


class TestMalformedQuery:
    def test_syntax_error_leaves_index_untouched(self, searcher: Searcher) -> None:
        before = searcher.store.document_count()

        with pytest.raises(QuerySyntaxError):
            searcher.search("tag:foo AND")

        assert searcher.store.document_count() == before


class TestTraversalFiltering:
    def test_hidden_and_foreign_files_contribute_nothing(self, write_note, build_index, tmp_path: Path) -> None:
        write_note("visible.md", body="ordinary")
        write_note(".hidden/secret.md", body="clandestine")
        write_note("readme.txt", body="extraneous")

        searcher = build_index(tmp_path / "notes")

        assert searcher.store.document_count() == 1
        assert searcher.store.postings("", searcher.analyzer.stem("clandestine")) == {}
        assert searcher.search("clandestine") == []
        assert searcher.search("extraneous") == []


class TestConcurrentWriter:
    def test_search_during_uncommitted_batch(self, searcher: Searcher, index_path: Path, tmp_path: Path) -> None:
        # enough postings to spill the writer's page cache
        terms = TermSet(fields={"": {f"word{n}": 1 for n in range(100_000)}, "tag": {"foo": 1}})
        pending = DocumentMetadata(path=tmp_path / "pending.md", title="Pending", sha256="x", mtime=1.0, size=1)

        with SQLiteTermIndex(index_path) as writer:
            writer.upsert_document(pending, terms, body="word " * 200_000)

            assert names(searcher.search("run")) == {"park.md"}
            assert names(searcher.search("tag:foo")) == {"park.md", "apples.md"}
            assert searcher.store.document_count() == 3

        assert searcher.store.document_count() == 3
