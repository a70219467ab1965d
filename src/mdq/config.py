"""Application configuration defaults."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from mdq.utils.files import NOTE_EXTENSION
from mdq.utils.text import DEFAULT_LANGUAGE, DEFAULT_MIN_LENGTH

DEFAULT_DB_PATH = Path("~/.mdq-data")
INDEX_FILENAME = "index.sqlite3"


@dataclass(slots=True)
class AppConfig:
    db_path: Path = DEFAULT_DB_PATH
    pager: str = "less"
    editor: str = "vim"
    extension: str = NOTE_EXTENSION
    language: str = DEFAULT_LANGUAGE
    min_token_length: int = DEFAULT_MIN_LENGTH
    top_k: int = 20
    verbosity: int = 0

    def resolve_db_path(self) -> Path:
        """Return the index directory with ``~`` expanded."""
        return Path(self.db_path).expanduser()

    @property
    def index_path(self) -> Path:
        return self.resolve_db_path() / INDEX_FILENAME
