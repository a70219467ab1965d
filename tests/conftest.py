"""Shared fixtures for mdq tests."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable, Optional

import pytest

from mdq.index.indexer import Indexer
from mdq.index.search import Searcher
from mdq.index.storage import SQLiteTermIndex
from mdq.utils.text import TextAnalyzer


def render_note(
    *,
    title: Optional[str] = None,
    tags: Iterable[str] = (),
    body: str = "",
    extra: str = "",
) -> str:
    lines = ["---"]
    if title is not None:
        lines.append(f"title: {title}")
    tags = list(tags)
    if tags:
        lines.append("tags: [" + ", ".join(tags) + "]")
    if extra:
        lines.append(extra.rstrip("\n"))
    lines.append("---")
    return "\n".join(lines) + "\n" + body


@pytest.fixture
def analyzer() -> TextAnalyzer:
    return TextAnalyzer()


@pytest.fixture
def write_note(tmp_path: Path) -> Callable[..., Path]:
    """Write a note below ``tmp_path / 'notes'`` and return its path."""

    def _write(name: str, **kwargs) -> Path:
        path = tmp_path / "notes" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_note(**kwargs), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def index_path(tmp_path: Path) -> Path:
    return tmp_path / "db" / "index.sqlite3"


@pytest.fixture
def build_index(index_path: Path, analyzer: TextAnalyzer):
    """Index the given paths and return a read-only searcher over the result."""
    opened: list[SQLiteTermIndex] = []

    def _build(*paths: Path) -> Searcher:
        with SQLiteTermIndex(index_path) as store:
            Indexer(store, analyzer).index(list(paths))
        reader = SQLiteTermIndex(index_path, read_only=True)
        opened.append(reader)
        return Searcher(reader, analyzer)

    yield _build
    for reader in opened:
        reader.close()
