"""Project scoping and keyword ranking over the memory index.

Scoring is plain substring matching, computed per field and weighted:

    title × 2  +  snippet × 1  +  tags × 1.5  (+ 20 if the query is in the category)

then adjusted by priority (high: ×1.5 + 50, low: ×0.7). Only the final,
truncated result set is hydrated with full record content.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from devmem.lifecycle import is_expired
from devmem.models import IndexEntry, Memory, parse_timestamp

if TYPE_CHECKING:
    from devmem.repository import MemoryRepository

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
BATCH_LIMIT = 1000

EXACT_PHRASE_SCORE = 100
WORD_SCORE = 10
REPEAT_BONUS = 2
REPEAT_CAP = 5

TITLE_WEIGHT = 2.0
SNIPPET_WEIGHT = 1.0
TAGS_WEIGHT = 1.5
CATEGORY_BONUS = 20

HIGH_PRIORITY_MULTIPLIER = 1.5
HIGH_PRIORITY_BONUS = 50
LOW_PRIORITY_MULTIPLIER = 0.7


@dataclass
class ScopeOptions:
    """Which projects a query covers.

    With ``project_id`` unset the current project is detected through the
    repository's resolver.
    """

    project_id: str | None = None
    include_global: bool = True
    all_projects: bool = False
    include_expired: bool = False


@dataclass
class SearchResult:
    entry: IndexEntry
    score: float
    memory: Memory | None = None


# ── Scope filter ──────────────────────────────────────────────


def filter_by_project(
    entries: list[IndexEntry],
    *,
    project_id: str | None,
    include_global: bool = True,
    all_projects: bool = False,
    include_expired: bool = False,
    now: datetime | None = None,
) -> list[IndexEntry]:
    """Drop expired entries, then keep globals (if wanted) and the current project's."""
    if not include_expired:
        entries = [e for e in entries if not is_expired(e, now)]
    if all_projects:
        return entries

    result = []
    for entry in entries:
        if entry.is_global:
            if include_global:
                result.append(entry)
        elif entry.project_id == project_id:
            result.append(entry)
    return result


def _scoped(
    repository: MemoryRepository, entries: list[IndexEntry], scope: ScopeOptions | None
) -> list[IndexEntry]:
    scope = scope or ScopeOptions()
    project_id = scope.project_id
    if project_id is None and not scope.all_projects:
        context = repository.resolver.resolve()
        project_id = context.project_id if context else None
    return filter_by_project(
        entries,
        project_id=project_id,
        include_global=scope.include_global,
        all_projects=scope.all_projects,
        include_expired=scope.include_expired,
        now=repository.now(),
    )


# ── Scoring ───────────────────────────────────────────────────


def score_text(text: str, query: str) -> int:
    """Exact phrase +100; each word present +10, plus up to +10 for repeats."""
    lower_text = text.lower()
    lower_query = query.lower()

    score = 0
    if lower_query in lower_text:
        score += EXACT_PHRASE_SCORE

    for word in lower_query.split():
        if word in lower_text:
            score += WORD_SCORE
            occurrences = lower_text.count(word)
            score += min(occurrences - 1, REPEAT_CAP) * REPEAT_BONUS
    return score


def score_entry(entry: IndexEntry, query: str) -> float:
    score = score_text(entry.title, query) * TITLE_WEIGHT
    score += score_text(entry.snippet, query) * SNIPPET_WEIGHT
    score += score_text(" ".join(entry.tags), query) * TAGS_WEIGHT
    if query.lower() in entry.category.lower():
        score += CATEGORY_BONUS

    if entry.priority == "high":
        score = score * HIGH_PRIORITY_MULTIPLIER + HIGH_PRIORITY_BONUS
    elif entry.priority == "low":
        score *= LOW_PRIORITY_MULTIPLIER
    return score


def rank(entries: list[IndexEntry], query: str, limit: int = DEFAULT_LIMIT) -> list[SearchResult]:
    """Score, drop zeros, sort descending (stable), truncate."""
    results = []
    for entry in entries:
        score = score_entry(entry, query)
        if score > 0:
            results.append(SearchResult(entry=entry, score=score))
    results.sort(key=lambda r: r.score, reverse=True)
    return results[:limit]


# ── Queries ───────────────────────────────────────────────────


def search(
    repository: MemoryRepository,
    query: str,
    *,
    category: str | None = None,
    tags: list[str] | None = None,
    limit: int = DEFAULT_LIMIT,
    include_full_content: bool = False,
    scope: ScopeOptions | None = None,
) -> list[SearchResult]:
    """Rank index entries against ``query`` within the requested scope."""
    entries = _scoped(repository, repository.list(category), scope)

    if tags:
        wanted = {t.lower() for t in tags}
        entries = [e for e in entries if any(t.lower() in wanted for t in e.tags)]

    results = rank(entries, query, limit)

    if include_full_content:
        for result in results:
            result.memory = repository.get(result.entry.id)
    logger.debug("search %r: %d results", query, len(results))
    return results


def _most_recent(entries: list[IndexEntry]) -> list[IndexEntry]:
    return sorted(entries, key=lambda e: parse_timestamp(e.updated), reverse=True)


def _hydrate(repository: MemoryRepository, entries: list[IndexEntry]) -> list[Memory]:
    memories = []
    for entry in entries:
        memory = repository.get(entry.id)
        if memory:
            memories.append(memory)
    return memories


def recall_by_category(
    repository: MemoryRepository,
    category: str,
    limit: int = 20,
    scope: ScopeOptions | None = None,
) -> list[Memory]:
    """Most recently updated memories in one category."""
    entries = _scoped(repository, repository.list(category), scope)
    return _hydrate(repository, _most_recent(entries)[:limit])


def recall_recent(
    repository: MemoryRepository,
    limit: int = DEFAULT_LIMIT,
    scope: ScopeOptions | None = None,
) -> list[Memory]:
    """Most recently updated memories across all categories."""
    entries = _scoped(repository, repository.list(), scope)
    return _hydrate(repository, _most_recent(entries)[:limit])


def scoped_entries(
    repository: MemoryRepository,
    category: str | None = None,
    scope: ScopeOptions | None = None,
) -> list[IndexEntry]:
    """Index listing with the project scope filter applied, no scoring."""
    return _scoped(repository, repository.list(category), scope)
