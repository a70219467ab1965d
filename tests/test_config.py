"""Tests for application configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from mdq.config import DEFAULT_DB_PATH, INDEX_FILENAME, AppConfig


class TestAppConfig:
    def test_default_config(self) -> None:
        config = AppConfig()

        assert config.db_path == Path("~/.mdq-data")
        assert config.pager == "less"
        assert config.editor == "vim"
        assert config.extension == ".md"
        assert config.min_token_length == 2
        assert config.top_k == 20
        assert config.verbosity == 0

    def test_custom_config(self) -> None:
        config = AppConfig(db_path=Path("/custom/db"), pager="bat", editor="nano", top_k=5)

        assert config.db_path == Path("/custom/db")
        assert config.pager == "bat"
        assert config.editor == "nano"
        assert config.top_k == 5

    def test_resolve_db_path_expands_home(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))

        assert AppConfig().resolve_db_path() == tmp_path / ".mdq-data"

    def test_resolve_db_path_absolute(self) -> None:
        assert AppConfig(db_path=Path("/abs/db")).resolve_db_path() == Path("/abs/db")

    def test_index_path(self) -> None:
        config = AppConfig(db_path=Path("/abs/db"))
        assert config.index_path == Path("/abs/db") / INDEX_FILENAME

    def test_default_constant(self) -> None:
        assert DEFAULT_DB_PATH == Path("~/.mdq-data")
