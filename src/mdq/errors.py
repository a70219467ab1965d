"""Exception types raised by mdq."""

from __future__ import annotations

from pathlib import Path


class MdqError(Exception):
    """Base class for all mdq errors."""


class ParseError(MdqError):
    """A note has a missing or malformed frontmatter header."""

    def __init__(self, path: Path | None, reason: str) -> None:
        self.path = path
        self.reason = reason
        where = f"{path}: " if path is not None else ""
        super().__init__(f"{where}{reason}")


class QuerySyntaxError(MdqError):
    """A query string does not follow the query grammar."""

    def __init__(self, message: str, position: int | None = None) -> None:
        self.message = message
        self.position = position
        if position is not None:
            message = f"{message} (at column {position + 1})"
        super().__init__(message)


class IndexIOError(MdqError):
    """The index could not be opened, written or committed."""


class ExternalProcessError(MdqError):
    """A viewer or editor process could not be launched."""

    def __init__(self, command: str, reason: str) -> None:
        self.command = command
        super().__init__(f"Could not run {command!r}: {reason}")
