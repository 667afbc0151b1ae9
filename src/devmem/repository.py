"""Memory repository: CRUD over memories, keeping content and index in step.

Record files are the durable source of truth. The index is a denormalized
summary used for all listing and search so that full records are only read
to hydrate final results. Every mutation writes the record first and the
index second; if the second write fails the record is orphaned until
``reconcile`` rebuilds the index from the content store.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

from devmem.config import MemoryConfig
from devmem.errors import AmbiguousIdError, InvalidPriorityError, SelfLinkError
from devmem.lifecycle import parse_ttl
from devmem.models import (
    DEFAULT_PRIORITY,
    PRIORITIES,
    IndexEntry,
    Memory,
    MemoryIndex,
    format_timestamp,
    utc_now,
)
from devmem.project import GitProjectResolver, ProjectResolver, StaticProjectResolver
from devmem.record import (
    category_dir,
    create_snippet,
    extract_title,
    parse_record,
    render_record,
    slugify,
)
from devmem.storage import (
    MEMORIES_DIR,
    ContentStore,
    FileContentStore,
    IndexStore,
    JsonIndexStore,
)

logger = logging.getLogger(__name__)


def entry_from_memory(memory: Memory, path: str) -> IndexEntry:
    """Build the index summary for a memory stored at ``path``."""
    return IndexEntry(
        id=memory.id,
        category=memory.category,
        title=memory.title,
        path=path,
        created=memory.created,
        updated=memory.updated,
        snippet=create_snippet(memory.content),
        tags=list(memory.tags),
        project_id=memory.project_id,
        project_name=memory.project_name,
        priority=memory.priority,
        expires_at=memory.expires_at,
        related_to=list(memory.related_to),
    )


@dataclass
class ReconcileReport:
    """What ``reconcile`` changed (or would change, on a dry run)."""

    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    refreshed: list[str] = field(default_factory=list)
    unreadable: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed or self.refreshed)


class MemoryRepository:
    """Read/write access to memories through a content store and an index store."""

    def __init__(
        self,
        content: ContentStore,
        index_store: IndexStore,
        resolver: ProjectResolver | None = None,
        config: MemoryConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.content = content
        self.index_store = index_store
        self.resolver = resolver or StaticProjectResolver()
        self.config = config or MemoryConfig()
        self._clock = clock

    @classmethod
    def from_config(
        cls, config: MemoryConfig, resolver: ProjectResolver | None = None
    ) -> MemoryRepository:
        """Repository over the local storage directory named in ``config``."""
        content = FileContentStore(config.storage_dir)
        return cls(
            content,
            JsonIndexStore(content),
            resolver=resolver or GitProjectResolver(),
            config=config,
        )

    def now(self) -> datetime:
        return self._clock()

    # ── Id resolution ─────────────────────────────────────────

    def _resolve_in(self, index: MemoryIndex, memory_id: str) -> int:
        """Position of the entry matching ``memory_id`` exactly or by prefix, or -1."""
        if not memory_id:
            return -1
        pos = index.position(memory_id)
        if pos != -1:
            return pos
        matches = [i for i, e in enumerate(index.memories) if e.id.startswith(memory_id)]
        if len(matches) > 1:
            raise AmbiguousIdError(memory_id, [index.memories[i].id for i in matches])
        return matches[0] if matches else -1

    def resolve(self, memory_id: str) -> IndexEntry | None:
        """Find the index entry for a full or partial id."""
        index = self.index_store.read()
        pos = self._resolve_in(index, memory_id)
        return index.memories[pos] if pos != -1 else None

    # ── Internal helpers ──────────────────────────────────────

    def _load(self, entry: IndexEntry) -> Memory | None:
        text = self.content.read(entry.path)
        if text is None:
            logger.warning("Memory %s has no record at %s", entry.id, entry.path)
            return None
        memory = parse_record(text)
        if memory is None:
            logger.warning("Unreadable memory record: %s", entry.path)
        return memory

    def _allocate_path(self, index: MemoryIndex, category: str, day: str, slug: str) -> str:
        """Pick a free record path, appending -2, -3... on collision."""
        taken = {e.path for e in index.memories}
        stem = f"{MEMORIES_DIR}/{category_dir(category)}/{day}-{slug or 'memory'}"
        path = f"{stem}.md"
        counter = 2
        while path in taken or self.content.exists(path):
            path = f"{stem}-{counter}.md"
            counter += 1
        return path

    def _link_back(self, index: MemoryIndex, memory: Memory, related_ids: Iterable[str]) -> None:
        """Add ``memory.id`` to each related memory, keeping relations symmetric."""
        for related_id in related_ids:
            pos = index.position(related_id)
            if pos == -1:
                continue
            entry = index.memories[pos]
            other = self._load(entry)
            if other is None or memory.id in other.related_to:
                continue
            other.related_to.append(memory.id)
            other.updated = memory.updated
            self.content.write(entry.path, render_record(other))
            index.memories[pos] = entry_from_memory(other, entry.path)

    def _unlink_back(self, index: MemoryIndex, memory: Memory, related_ids: Iterable[str]) -> None:
        """Drop ``memory.id`` from each formerly related memory."""
        for related_id in related_ids:
            pos = index.position(related_id)
            if pos == -1:
                continue
            entry = index.memories[pos]
            other = self._load(entry)
            if other is None or memory.id not in other.related_to:
                continue
            other.related_to = [r for r in other.related_to if r != memory.id]
            other.updated = memory.updated
            self.content.write(entry.path, render_record(other))
            index.memories[pos] = entry_from_memory(other, entry.path)

    def _resolve_related(
        self, index: MemoryIndex, memory_id: str, related_ids: Iterable[str], keep: Iterable[str] = ()
    ) -> list[str]:
        """Full ids for ``related_ids``, deduplicated.

        Ids already in ``keep`` pass through unresolved so dangling references
        survive an edit; other unknown ids are skipped.
        """
        kept = set(keep)
        related: list[str] = []
        for rid in related_ids:
            if rid in kept:
                full_id = rid
            else:
                pos = self._resolve_in(index, rid)
                if pos == -1:
                    logger.warning("Skipping unknown related memory %s", rid)
                    continue
                full_id = index.memories[pos].id
            if full_id == memory_id:
                raise SelfLinkError(f"Cannot relate memory {memory_id[:8]} to itself")
            if full_id not in related:
                related.append(full_id)
        return related

    # ── CRUD ──────────────────────────────────────────────────

    def create(
        self,
        category: str,
        content: str,
        tags: list[str] | None = None,
        *,
        global_: bool = False,
        priority: str | None = None,
        ttl: str | None = None,
        related_to: list[str] | None = None,
    ) -> Memory:
        """Store a new memory, scoped to the current project unless ``global_``."""
        if priority is not None and priority not in PRIORITIES:
            raise InvalidPriorityError(priority)
        now = self.now()
        expires_at = format_timestamp(parse_ttl(ttl, now)) if ttl else None

        project = None if global_ else self.resolver.resolve()
        index = self.index_store.read()

        memory_id = str(uuid.uuid4())
        related = self._resolve_related(index, memory_id, related_to or [])

        content = content.strip()
        ts = format_timestamp(now)
        title = extract_title(content)
        memory = Memory(
            id=memory_id,
            category=category,
            title=title,
            content=content,
            created=ts,
            updated=ts,
            tags=list(tags or []),
            project_id=project.project_id if project else None,
            project_name=project.project_name if project else None,
            priority=priority or DEFAULT_PRIORITY,
            expires_at=expires_at,
            related_to=related,
        )

        path = self._allocate_path(index, category, ts[:10], slugify(title))
        self.content.write(path, render_record(memory))

        index.memories.append(entry_from_memory(memory, path))
        self._link_back(index, memory, related)
        self.index_store.write(index)

        logger.info("Created memory %s (%s): %s", memory.id[:8], category, title)
        return memory

    def get(self, memory_id: str) -> Memory | None:
        """Load a full memory by full or partial id."""
        entry = self.resolve(memory_id)
        if entry is None:
            return None
        return self._load(entry)

    def update(
        self,
        memory_id: str,
        *,
        content: str | None = None,
        tags: list[str] | None = None,
        related_to: list[str] | None = None,
    ) -> Memory | None:
        """Apply changes and bump ``updated``. Returns None if the memory is missing.

        A new ``related_to`` is mirrored onto the memories added to or dropped
        from the list, so relations stay symmetric.
        """
        index = self.index_store.read()
        pos = self._resolve_in(index, memory_id)
        if pos == -1:
            return None
        entry = index.memories[pos]
        memory = self._load(entry)
        if memory is None:
            return None

        previous = list(memory.related_to)
        if related_to is not None:
            memory.related_to = self._resolve_related(index, memory.id, related_to, keep=previous)
        if content is not None:
            memory.content = content.strip()
            memory.title = extract_title(memory.content)
        if tags is not None:
            memory.tags = list(tags)
        memory.updated = format_timestamp(self.now())

        self.content.write(entry.path, render_record(memory))
        index.memories[pos] = entry_from_memory(memory, entry.path)
        if related_to is not None:
            self._link_back(index, memory, [r for r in memory.related_to if r not in previous])
            self._unlink_back(index, memory, [r for r in previous if r not in memory.related_to])
        self.index_store.write(index)

        logger.info("Updated memory %s", memory.id[:8])
        return memory

    def delete(self, memory_id: str) -> bool:
        """Remove record and index entry. False if no such memory."""
        index = self.index_store.read()
        pos = self._resolve_in(index, memory_id)
        if pos == -1:
            return False
        entry = index.memories.pop(pos)

        self.content.delete(entry.path)
        self.index_store.write(index)

        logger.info("Deleted memory %s: %s", entry.id[:8], entry.title)
        return True

    def list(self, category: str | None = None) -> list[IndexEntry]:
        """All index entries in stored order, optionally for one category."""
        entries = self.index_store.read().memories
        if category:
            return [e for e in entries if e.category == category]
        return entries

    def index(self) -> MemoryIndex:
        return self.index_store.read()

    # ── Reconciliation ────────────────────────────────────────

    def reconcile(self, dry_run: bool = False) -> ReconcileReport:
        """Rebuild the index from the record files in the content store.

        Entries keep their index order; records with no entry are appended in
        creation order; entries whose record is gone are dropped.
        """
        index = self.index_store.read()
        report = ReconcileReport(dry_run=dry_run)

        on_disk: dict[str, Memory] = {}
        for path in self.content.list_paths(MEMORIES_DIR):
            text = self.content.read(path)
            memory = parse_record(text) if text is not None else None
            if memory is None:
                logger.warning("Skipping unreadable record during reconcile: %s", path)
                report.unreadable.append(path)
                continue
            on_disk[path] = memory

        rebuilt: list[IndexEntry] = []
        seen_ids: set[str] = set()
        for entry in index.memories:
            memory = on_disk.pop(entry.path, None)
            if memory is None or memory.id in seen_ids:
                report.removed.append(entry.id)
                continue
            fresh = entry_from_memory(memory, entry.path)
            if fresh != entry:
                report.refreshed.append(entry.id)
            rebuilt.append(fresh)
            seen_ids.add(memory.id)

        for path, memory in sorted(on_disk.items(), key=lambda item: item[1].created):
            if memory.id in seen_ids:
                logger.warning("Duplicate memory id %s at %s", memory.id, path)
                report.unreadable.append(path)
                continue
            rebuilt.append(entry_from_memory(memory, path))
            report.added.append(memory.id)
            seen_ids.add(memory.id)

        if report.changed and not dry_run:
            index.memories = rebuilt
            self.index_store.write(index)
            logger.info(
                "Reconciled index: %d added, %d removed, %d refreshed",
                len(report.added),
                len(report.removed),
                len(report.refreshed),
            )
        return report
