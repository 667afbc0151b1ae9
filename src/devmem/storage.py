"""Filesystem-backed content store and JSON index store.

Layout:
    <storage_dir>/
    ├── index.json                            # {"version": 1, "memories": [...]}
    └── memories/
        └── <category>/
            └── 2026-02-18-use-postgres.md   # frontmatter record
"""

from __future__ import annotations

import json
import logging
from pathlib import Path, PurePosixPath
from typing import Protocol

from devmem.models import MemoryIndex

logger = logging.getLogger(__name__)

INDEX_FILE = "index.json"
MEMORIES_DIR = "memories"


class ContentStore(Protocol):
    """Key → text blob storage addressed by logical path."""

    def read(self, path: str) -> str | None: ...

    def write(self, path: str, text: str) -> None: ...

    def delete(self, path: str) -> bool: ...

    def exists(self, path: str) -> bool: ...

    def list_paths(self, prefix: str) -> list[str]: ...


class IndexStore(Protocol):
    def read(self) -> MemoryIndex: ...

    def write(self, index: MemoryIndex) -> None: ...


class FileContentStore:
    """Content store rooted at a local directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def _full_path(self, path: str) -> Path:
        rel = PurePosixPath(path)
        if rel.is_absolute() or ".." in rel.parts:
            raise ValueError(f"Storage path escapes root: {path}")
        return self.root.joinpath(*rel.parts)

    def read(self, path: str) -> str | None:
        try:
            return self._full_path(path).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def write(self, path: str, text: str) -> None:
        full = self._full_path(path)
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_text(text, encoding="utf-8")

    def delete(self, path: str) -> bool:
        try:
            self._full_path(path).unlink()
        except FileNotFoundError:
            return False
        return True

    def exists(self, path: str) -> bool:
        return self._full_path(path).exists()

    def list_paths(self, prefix: str = MEMORIES_DIR) -> list[str]:
        """Relative paths of all .md records under prefix, sorted."""
        base = self._full_path(prefix)
        if not base.is_dir():
            return []
        return sorted(p.relative_to(self.root).as_posix() for p in base.rglob("*.md"))


class JsonIndexStore:
    """The index document, persisted as pretty-printed JSON."""

    def __init__(self, content: FileContentStore, filename: str = INDEX_FILE) -> None:
        self.content = content
        self.filename = filename

    def read(self) -> MemoryIndex:
        text = self.content.read(self.filename)
        if not text:
            return MemoryIndex()
        return MemoryIndex.from_dict(json.loads(text))

    def write(self, index: MemoryIndex) -> None:
        self.content.write(
            self.filename, json.dumps(index.to_dict(), indent=2, ensure_ascii=False)
        )
        logger.debug("Wrote index (%d entries)", len(index.memories))
