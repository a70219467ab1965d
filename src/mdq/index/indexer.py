"""Note indexing pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from mdq.errors import ParseError
from mdq.index.mapping import build_term_set
from mdq.index.storage import SQLiteTermIndex
from mdq.ingestion.note_loader import load_note
from mdq.models import DocumentMetadata
from mdq.utils.files import NOTE_EXTENSION, compute_sha256, iter_note_paths
from mdq.utils.text import TextAnalyzer

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class IndexStats:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    processed_files: list[Path] = field(default_factory=list)
    failures: list[tuple[Path, str]] = field(default_factory=list)

    def increment(self, status: str, path: Path) -> None:
        if status == "inserted":
            self.inserted += 1
        elif status == "updated":
            self.updated += 1
        elif status == "skipped":
            self.skipped += 1
        else:
            self.failed += 1
        self.processed_files.append(path)

    def record_failure(self, path: Path, reason: str) -> None:
        self.increment("failed", path)
        self.failures.append((path, reason))

    @property
    def indexed_files(self) -> list[Path]:
        failed = {path for path, _ in self.failures}
        return [path for path in self.processed_files if path not in failed]


class Indexer:
    """Walks note directories and feeds their term sets to the index."""

    def __init__(
        self,
        store: SQLiteTermIndex,
        analyzer: TextAnalyzer,
        *,
        extension: str = NOTE_EXTENSION,
    ) -> None:
        self.store = store
        self.analyzer = analyzer
        self.extension = extension

    def index(self, paths: Sequence[Path], *, force: bool = False) -> IndexStats:
        """Index all notes under ``paths``, committing once per top-level path.

        Missing paths and files that cannot be read or parsed are logged and
        counted as failed; index write errors propagate.
        """
        stats = IndexStats()
        for top_level in paths:
            if not top_level.exists():
                LOGGER.error("Path not found: %s", top_level)
                stats.record_failure(top_level, "path does not exist")
                continue

            found = 0
            for path in iter_note_paths([top_level], extension=self.extension):
                found += 1
                try:
                    status = self._index_single(path, force=force)
                except (ParseError, OSError) as exc:
                    LOGGER.error("Failed to load file %s: %s", path, exc)
                    stats.record_failure(path, str(exc))
                    continue
                LOGGER.info("%s: %s", status.capitalize(), path)
                stats.increment(status, path)

            if not found:
                LOGGER.warning("No notes found under %s", top_level)
            self.store.commit()
        return stats

    def _index_single(self, path: Path, *, force: bool = False) -> str:
        """Index a single note file."""
        document = load_note(path)
        term_set = build_term_set(document, self.analyzer)
        stat = path.stat()
        metadata = DocumentMetadata(
            path=path.resolve(),
            title=document.title,
            sha256=compute_sha256(path),
            mtime=stat.st_mtime,
            size=stat.st_size,
        )
        LOGGER.debug("Mapped %s to %d terms", path, len(term_set))
        return self.store.upsert_document(metadata, term_set, body=document.body, force=force)
