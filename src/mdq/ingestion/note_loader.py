"""Markdown note loading and YAML frontmatter parsing.

A note starts with a YAML header between two ``---`` lines::

    ---
    title: Weekly review
    tags: [work, review]
    created: 2022-03-14
    ---
    # Body text follows, kept verbatim.

Everything after the closing marker is the body. Notes without a header, or
with a header that is not a YAML mapping, are rejected with ``ParseError``.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from mdq.errors import ParseError
from mdq.models import Document, MetadataValue

LOGGER = logging.getLogger(__name__)

OPENING_MARKER = "---"
CLOSING_MARKERS = ("---", "...")

TITLE_KEYS = ("title",)
TAG_KEYS = ("tags", "tag")
CREATED_KEYS = ("created", "date")
MODIFIED_KEYS = ("modified", "updated")

_TAG_SPLIT = re.compile(r"[,\s]+")


def load_note(path: Path) -> Document:
    """Read and parse a note file."""
    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(path, f"not valid UTF-8 ({exc.reason})") from exc
    return parse_note(content, path)


def parse_note(content: str, path: Path) -> Document:
    """Split ``content`` into frontmatter and body and build a Document."""
    header, body = split_front_matter(content, path)
    try:
        raw = yaml.safe_load(header) if header.strip() else {}
    except yaml.YAMLError as exc:
        raise ParseError(path, f"invalid YAML frontmatter: {exc}") from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ParseError(path, "frontmatter is not a mapping")

    metadata: Dict[str, Any] = {str(key): value for key, value in raw.items()}

    title_value = _pop_first(metadata, TITLE_KEYS)
    title = str(title_value).strip() if title_value not in (None, "") else ""
    tags = _parse_tags(_pop_all(metadata, TAG_KEYS))
    created = _pop_date(metadata, CREATED_KEYS)
    modified = _pop_date(metadata, MODIFIED_KEYS)

    return Document(
        path=path,
        title=title or path.stem,
        body=body,
        tags=tags,
        created=created,
        modified=modified,
        metadata={key: coerce_value(value) for key, value in metadata.items()},
    )


def split_front_matter(content: str, path: Path) -> tuple[str, str]:
    """Return ``(header_text, body)``; raise ParseError if no header."""
    if content.startswith("\ufeff"):
        content = content[1:]
    lines = content.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != OPENING_MARKER:
        raise ParseError(path, "missing frontmatter header")

    for index in range(1, len(lines)):
        if lines[index].rstrip() in CLOSING_MARKERS:
            header = "".join(lines[1:index])
            body = "".join(lines[index + 1 :])
            return header, body

    raise ParseError(path, "unterminated frontmatter header")


def coerce_value(value: Any) -> MetadataValue:
    """Flatten a YAML value into a string or a list of strings."""
    if isinstance(value, (list, tuple, set)):
        return [_scalar_to_str(item) for item in value if item is not None]
    return _scalar_to_str(value)


def _scalar_to_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _matching_keys(metadata: Dict[str, Any], keys: Iterable[str]) -> List[str]:
    """Return the keys of ``metadata`` equal to one of ``keys`` ignoring case, in ``keys`` order."""
    by_name: Dict[str, List[str]] = {}
    for key in metadata:
        by_name.setdefault(key.lower(), []).append(key)
    return [actual for key in keys for actual in by_name.get(key, [])]


def _pop_first(metadata: Dict[str, Any], keys: Iterable[str]) -> Any:
    value = None
    for key in _matching_keys(metadata, keys):
        candidate = metadata.pop(key)
        if value is None:
            value = candidate
    return value


def _pop_all(metadata: Dict[str, Any], keys: Iterable[str]) -> List[Any]:
    return [metadata.pop(key) for key in _matching_keys(metadata, keys)]


def _parse_tags(values: List[Any]) -> frozenset[str]:
    tags: set[str] = set()
    for value in values:
        if value is None:
            continue
        items = value if isinstance(value, (list, tuple, set)) else _TAG_SPLIT.split(str(value))
        for item in items:
            if item is None:
                continue
            tag = str(item).strip().lstrip("#").strip()
            if tag:
                tags.add(tag)
    return frozenset(tags)


def _pop_date(metadata: Dict[str, Any], keys: Iterable[str]) -> Optional[datetime]:
    for key in _matching_keys(metadata, keys):
        parsed = _to_datetime(metadata[key])
        if parsed is None:
            # keep unparsable values as plain metadata
            LOGGER.debug("Ignoring unparsable %s value %r", key, metadata[key])
            continue
        metadata.pop(key)
        return parsed
    return None


def _to_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None
