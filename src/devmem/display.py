"""Text rendering for memories, listings, batch results and statistics."""

from __future__ import annotations

import math
from datetime import datetime

from devmem.analytics import MemoryStats
from devmem.batch import BatchResult
from devmem.lifecycle import DEFAULT_STALE_DAYS, staleness_info
from devmem.models import IndexEntry, Memory


def _priority_marker(priority: str) -> str:
    return priority.upper() if priority and priority != "normal" else ""


def format_memories(
    memories: list[Memory],
    now: datetime | None = None,
    stale_days: int = DEFAULT_STALE_DAYS,
) -> str:
    if not memories:
        return "No memories found."

    blocks = []
    for m in memories:
        tag_str = f" [{', '.join(m.tags)}]" if m.tags else ""
        project_str = f"\n**Project:** {m.project_name}" if m.project_name else "\n**Project:** (global)"
        marker = _priority_marker(m.priority)
        priority_str = f" **[{marker}]**" if marker else ""
        info = staleness_info(m, stale_days, now)
        staleness_str = f" **({info})**" if info else ""
        blocks.append(
            f"## {m.title}{priority_str}{staleness_str}\n"
            f"**Category:** {m.category}{tag_str}{project_str}\n"
            f"**ID:** {m.id}\n"
            f"**Updated:** {m.updated}\n\n"
            f"{m.content}"
        )
    return "\n\n---\n\n".join(blocks)


def format_index(
    entries: list[IndexEntry],
    now: datetime | None = None,
    stale_days: int = DEFAULT_STALE_DAYS,
) -> str:
    """Compact listing grouped by category."""
    if not entries:
        return "No memories stored."

    by_category: dict[str, list[IndexEntry]] = {}
    for entry in entries:
        by_category.setdefault(entry.category, []).append(entry)

    lines: list[str] = []
    for category, group in by_category.items():
        lines.append(f"\n## {category.upper()}")
        for entry in group:
            tag_str = f" [{', '.join(entry.tags)}]" if entry.tags else ""
            project_str = f" ({entry.project_name})" if entry.project_name else " (global)"
            marker = _priority_marker(entry.priority)
            priority_str = f" [{marker}]" if marker else ""
            info = staleness_info(entry, stale_days, now)
            staleness_str = f" ({info})" if info else ""
            lines.append(f"- **{entry.title}**{priority_str}{staleness_str}{tag_str}{project_str}")
            lines.append(f"  ID: {entry.id[:8]}... | Updated: {entry.updated[:10]}")
            if entry.snippet:
                lines.append(f"  {entry.snippet}")
    return "\n".join(lines)


def format_batch_result(result: BatchResult, operation: str) -> str:
    lines = [f"## {operation} Results\n", f"Processed: {result.processed}", f"Succeeded: {result.succeeded}"]
    if result.failed > 0:
        lines.append(f"Failed: {result.failed}")
    lines.append("")

    if result.items:
        lines.append("### Details\n")
        for item in result.items:
            status = "✓" if item.success else "✗"
            lines.append(f"{status} {item.title}")
            if item.error:
                lines.append(f"  Error: {item.error}")
    return "\n".join(lines)


def _bar(count: int, total: int, width: int) -> str:
    return "█" * math.ceil(count / total * width)


def format_stats(stats: MemoryStats, stale_days: int = DEFAULT_STALE_DAYS) -> str:
    lines = ["# Memory Statistics\n", "## Overview"]
    lines.append(f"**Total memories:** {stats.total}")
    lines.append(f"**Average age:** {stats.avg_age} days")
    if stats.oldest:
        lines.append(f'**Oldest:** "{stats.oldest[0]}" ({stats.oldest[1]}d ago)')
    if stats.newest:
        lines.append(f'**Newest:** "{stats.newest[0]}" ({stats.newest[1]}d ago)')
    lines.append("")

    lines.append("## Health")
    issues = []
    if stats.expired:
        issues.append(f"{stats.expired} expired (run cleanup)")
    if stats.stale:
        issues.append(f"{stats.stale} stale (>{stale_days} days old)")
    lines.append(f"⚠️  {', '.join(issues)}" if issues else "✅ All memories are fresh")
    lines.append("")

    lines.append("## By Category")
    if not stats.by_category:
        lines.append("(none)")
    for category, count in sorted(stats.by_category.items(), key=lambda kv: kv[1], reverse=True):
        pct = round(count / stats.total * 100)
        lines.append(f"  {category:<12} {_bar(count, stats.total, 20)} {count} ({pct}%)")
    lines.append("")

    lines.append("## By Priority")
    lines.append(f"  High:   {stats.by_priority.get('high', 0)}")
    lines.append(f"  Normal: {stats.by_priority.get('normal', 0)}")
    lines.append(f"  Low:    {stats.by_priority.get('low', 0)}")
    lines.append("")

    lines.append("## By Project")
    projects = sorted(stats.by_project.values(), key=lambda p: p.count, reverse=True)
    if not projects:
        lines.append("(none)")
    for project in projects[:10]:
        pct = round(project.count / stats.total * 100)
        lines.append(f"  {project.name:<30} {_bar(project.count, stats.total, 20)} {project.count} ({pct}%)")
    if len(projects) > 10:
        lines.append(f"  ... and {len(projects) - 10} more projects")
    lines.append("")

    lines.append("## Top Tags")
    if not stats.top_tags:
        lines.append("(no tags)")
    for tag, count in stats.top_tags:
        lines.append(f"  #{tag:<20} {_bar(count, stats.total, 15)} {count}")
    lines.append("")

    lines.append("## Relationships")
    if stats.with_links == 0:
        lines.append("No linked memories yet. Use `link <id1> <id2>` to create relationships.")
    else:
        pct = round(stats.with_links / stats.total * 100)
        lines.append(f"{stats.with_links} memories have links ({pct}%)")
    return "\n".join(lines)
