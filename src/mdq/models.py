"""Core mdq data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Union

MetadataValue = Union[str, List[str]]


@dataclass(slots=True)
class Document:
    """A parsed note: frontmatter fields plus the verbatim body."""

    path: Path
    title: str
    body: str = ""
    tags: FrozenSet[str] = frozenset()
    created: Optional[datetime] = None
    modified: Optional[datetime] = None
    metadata: Dict[str, MetadataValue] = field(default_factory=dict)


@dataclass(slots=True)
class DocumentMetadata:
    """What the index stores about a note besides its terms."""

    path: Path
    title: str
    sha256: str
    mtime: float
    size: int
