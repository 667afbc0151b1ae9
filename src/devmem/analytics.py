"""Index statistics and export."""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from devmem.lifecycle import DEFAULT_STALE_DAYS, is_expired, is_stale
from devmem.models import format_timestamp, parse_timestamp

if TYPE_CHECKING:
    from devmem.models import Memory
    from devmem.repository import MemoryRepository

GLOBAL_KEY = "global"
TOP_TAGS = 10


@dataclass
class ProjectCount:
    name: str
    count: int = 0


@dataclass
class MemoryStats:
    total: int = 0
    by_category: dict[str, int] = field(default_factory=dict)
    by_project: dict[str, ProjectCount] = field(default_factory=dict)
    by_priority: dict[str, int] = field(
        default_factory=lambda: {"high": 0, "normal": 0, "low": 0}
    )
    top_tags: list[tuple[str, int]] = field(default_factory=list)
    expired: int = 0
    stale: int = 0
    with_links: int = 0
    avg_age: int = 0
    oldest: tuple[str, int] | None = None
    newest: tuple[str, int] | None = None


def memory_statistics(
    repository: MemoryRepository,
    now: datetime | None = None,
    stale_days: int = DEFAULT_STALE_DAYS,
) -> MemoryStats:
    """Counts and ages over the whole index."""
    entries = repository.list()
    now = now or repository.now()
    stats = MemoryStats(total=len(entries))
    if not entries:
        return stats

    tag_counts: Counter[str] = Counter()
    total_age = 0.0
    oldest: tuple[str, float] | None = None
    newest: tuple[str, float] | None = None

    for entry in entries:
        stats.by_category[entry.category] = stats.by_category.get(entry.category, 0) + 1

        if entry.project_id:
            key, name = entry.project_id, entry.project_name or "Unknown"
        else:
            key, name = GLOBAL_KEY, "(Global)"
        stats.by_project.setdefault(key, ProjectCount(name=name)).count += 1

        stats.by_priority[entry.priority] = stats.by_priority.get(entry.priority, 0) + 1
        tag_counts.update(entry.tags)

        if is_expired(entry, now):
            stats.expired += 1
        elif is_stale(entry, stale_days, now):
            stats.stale += 1

        if entry.related_to:
            stats.with_links += 1

        age = (now - parse_timestamp(entry.created)).total_seconds() / 86400
        total_age += age
        if oldest is None or age > oldest[1]:
            oldest = (entry.title, age)
        if newest is None or age < newest[1]:
            newest = (entry.title, age)

    stats.avg_age = round(total_age / len(entries))
    # most_common is stable for equal counts, so first-seen tags win ties
    stats.top_tags = tag_counts.most_common(TOP_TAGS)
    if oldest:
        stats.oldest = (oldest[0], round(oldest[1]))
    if newest:
        stats.newest = (newest[0], round(newest[1]))
    return stats


def _load_all(repository: MemoryRepository, category: str | None) -> list[Memory]:
    memories = []
    for entry in repository.list(category):
        memory = repository.get(entry.id)
        if memory is not None:
            memories.append(memory)
    return memories


def export_json(repository: MemoryRepository, category: str | None = None) -> str:
    """All (or one category's) memories as a JSON array."""
    memories = _load_all(repository, category)
    return json.dumps([m.to_dict() for m in memories], indent=2, ensure_ascii=False)


def export_markdown(repository: MemoryRepository, category: str | None = None) -> str:
    """All (or one category's) memories as a single markdown document."""
    memories = _load_all(repository, category)
    lines = [
        "# Memory Export",
        "",
        f"Generated: {format_timestamp(repository.now())}",
        f"Total memories: {len(memories)}",
        "",
        "---",
        "",
    ]
    for memory in memories:
        lines.append(f"## {memory.title}")
        lines.append("")
        lines.append(f"**Category:** {memory.category}")
        if memory.tags:
            lines.append(f"**Tags:** {', '.join('#' + t for t in memory.tags)}")
        if memory.project_name:
            lines.append(f"**Project:** {memory.project_name}")
        if memory.priority != "normal":
            lines.append(f"**Priority:** {memory.priority}")
        lines.append(f"**Created:** {memory.created[:10]}")
        lines.append(f"**Updated:** {memory.updated[:10]}")
        lines.append("")
        lines.append(memory.content)
        lines.append("")
        lines.append("---")
        lines.append("")
    return "\n".join(lines)
