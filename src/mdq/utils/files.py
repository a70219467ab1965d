"""Utility helpers for working with files."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Iterable, Iterator

NOTE_EXTENSION = ".md"


def is_hidden(path: Path) -> bool:
    return path.name.startswith(".")


def iter_note_paths(inputs: Iterable[Path], *, extension: str = NOTE_EXTENSION) -> Iterator[Path]:
    """Yield note paths from input paths, descending into directories.

    Hidden files and directories below an input are skipped.
    """
    suffix = extension.lower()
    for item in inputs:
        if item.is_dir():
            yield from iter_note_paths(
                sorted(child for child in item.iterdir() if not is_hidden(child)),
                extension=extension,
            )
        elif item.is_file() and item.suffix.lower() == suffix:
            yield item


def compute_sha256(path: Path) -> str:
    """Compute SHA256 hash for a file."""
    sha = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 20), b""):
            sha.update(chunk)
    return sha.hexdigest()
