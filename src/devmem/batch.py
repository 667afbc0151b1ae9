"""Batch tagging and bulk deletion with dry-run previews.

Every item is processed independently: a failure is recorded on that item
and the batch carries on. ``bulk_delete`` previews by default.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from devmem.errors import BatchFilterError
from devmem.lifecycle import DEFAULT_STALE_DAYS, is_expired, is_stale
from devmem.models import IndexEntry
from devmem.search import BATCH_LIMIT, ScopeOptions, search

if TYPE_CHECKING:
    from devmem.repository import MemoryRepository

logger = logging.getLogger(__name__)


@dataclass
class BatchItem:
    id: str
    title: str
    success: bool
    error: str | None = None


@dataclass
class BatchResult:
    """Aggregate report of a batch operation."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    items: list[BatchItem] = field(default_factory=list)
    dry_run: bool = False

    @property
    def ids(self) -> list[str]:
        return [item.id for item in self.items]

    def record(self, entry: IndexEntry, success: bool, error: str | None = None) -> None:
        self.items.append(BatchItem(id=entry.id, title=entry.title, success=success, error=error))
        if success:
            self.succeeded += 1
        else:
            self.failed += 1


def _search_matches(
    repository: MemoryRepository, query: str, category: str | None
) -> list[IndexEntry]:
    results = search(
        repository,
        query,
        category=category,
        limit=BATCH_LIMIT,
        scope=ScopeOptions(all_projects=True, include_expired=True),
    )
    return [r.entry for r in results]


def _select(
    repository: MemoryRepository, query: str | None, category: str | None
) -> list[IndexEntry]:
    if query:
        return _search_matches(repository, query, category)
    return repository.list(category)


def _run(
    entries: list[IndexEntry],
    dry_run: bool,
    action,
) -> BatchResult:
    result = BatchResult(dry_run=dry_run)
    for entry in entries:
        result.processed += 1
        if dry_run:
            result.record(entry, True)
            continue
        try:
            result.record(entry, bool(action(entry)))
        except Exception as e:
            logger.error("Batch item %s failed: %s", entry.id, e)
            result.record(entry, False, str(e))
    return result


def add_tag(
    repository: MemoryRepository,
    tag: str,
    *,
    query: str | None = None,
    category: str | None = None,
    dry_run: bool = False,
) -> BatchResult:
    """Add ``tag`` to every selected memory. Already-tagged ones count as done."""
    entries = _select(repository, query, category)

    def apply(entry: IndexEntry) -> bool:
        if tag in entry.tags:
            return True
        return repository.update(entry.id, tags=[*entry.tags, tag]) is not None

    result = _run(entries, dry_run, apply)
    if not dry_run:
        logger.info("Tagged %d memories with #%s", result.succeeded, tag)
    return result


def remove_tag(
    repository: MemoryRepository,
    tag: str,
    *,
    query: str | None = None,
    category: str | None = None,
    dry_run: bool = False,
) -> BatchResult:
    """Remove ``tag`` from every selected memory that carries it."""
    entries = [e for e in _select(repository, query, category) if tag in e.tags]

    def apply(entry: IndexEntry) -> bool:
        return repository.update(entry.id, tags=[t for t in entry.tags if t != tag]) is not None

    result = _run(entries, dry_run, apply)
    if not dry_run:
        logger.info("Removed #%s from %d memories", tag, result.succeeded)
    return result


def bulk_delete(
    repository: MemoryRepository,
    *,
    category: str | None = None,
    expired: bool = False,
    stale: bool = False,
    query: str | None = None,
    dry_run: bool = True,
    stale_days: int = DEFAULT_STALE_DAYS,
) -> BatchResult:
    """Delete memories matching every given filter. Previews unless ``dry_run=False``."""
    if not (category or expired or stale or query):
        raise BatchFilterError("Must specify at least one filter: expired, stale, query, or category")

    now = repository.now()
    entries = repository.list(category)
    if expired:
        entries = [e for e in entries if is_expired(e, now)]
    if stale:
        entries = [e for e in entries if is_stale(e, stale_days, now)]
    if query:
        matched = {e.id for e in _search_matches(repository, query, category)}
        entries = [e for e in entries if e.id in matched]

    result = _run(entries, dry_run, lambda entry: repository.delete(entry.id))
    if not dry_run:
        logger.info("Bulk deleted %d memories", result.succeeded)
    return result
