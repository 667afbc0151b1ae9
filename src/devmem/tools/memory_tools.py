"""Memory tools for a host agent.

These functions are designed to be exposed as tools to the AI agent,
allowing it to store, search and curate its own memories. Every tool
returns display text; domain errors become a "Failed to ..." message.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from devmem import analytics, batch, lifecycle, relations
from devmem.context import gather_context
from devmem.display import format_batch_result, format_index, format_memories, format_stats
from devmem.errors import DevMemError
from devmem.project import GitProjectResolver
from devmem.search import ScopeOptions, recall_by_category, recall_recent, search

if TYPE_CHECKING:
    from devmem.repository import MemoryRepository


def get_memory_tools(repo: MemoryRepository) -> dict[str, Callable[..., str]]:
    """Return a dict of tool_name -> callable for memory operations.

    These can be registered as agent tools or called directly.
    """
    settings = repo.config.search

    def _render(memories) -> str:
        return format_memories(memories, repo.now(), settings.stale_days)

    def remember(
        category: str,
        content: str,
        tags: list[str] | None = None,
        global_: bool = False,
        priority: str | None = None,
        ttl: str | None = None,
    ) -> str:
        """Store a new memory, scoped to the current git project unless global."""
        try:
            memory = repo.create(
                category, content, tags, global_=global_, priority=priority, ttl=ttl
            )
        except DevMemError as e:
            return f"Failed to store memory: {e}"
        lines = [
            "Memory stored successfully!",
            f"ID: {memory.id}",
            f"Category: {memory.category}",
            f"Title: {memory.title}",
            f"Project: {memory.project_name}" if memory.project_name else "Scope: global",
        ]
        if memory.priority != "normal":
            lines.append(f"Priority: {memory.priority}")
        if memory.expires_at:
            lines.append(f"Expires: {memory.expires_at[:10]}")
        return "\n".join(lines)

    def recall(
        query: str | None = None,
        category: str | None = None,
        limit: int | None = None,
        all_projects: bool = False,
        global_only: bool = False,
    ) -> str:
        """Search memories; the most recent ones when no query is given."""
        limit = limit or settings.default_limit
        scope = ScopeOptions(all_projects=all_projects or global_only)
        if not query and not category:
            memories = recall_recent(repo, limit, scope)
        elif category and not query:
            memories = recall_by_category(repo, category, limit, scope)
        else:
            results = search(
                repo, query or "", category=category, limit=limit,
                include_full_content=True, scope=scope,
            )
            memories = [r.memory for r in results if r.memory is not None]

        if global_only:
            memories = [m for m in memories if m.is_global]

        if not memories:
            hint = ""
            if not scope.all_projects:
                context = repo.resolver.resolve()
                if context:
                    hint = f"\nSearched in project: {context.project_name} (use all_projects for all projects)"
                else:
                    hint = "\nNo project context detected (showing global memories only)"
            return f"No memories found matching your query.{hint}"
        return _render(memories)

    def list_memories(category: str | None = None, project_only: bool = False) -> str:
        """List index entries, optionally only the current project's."""
        entries = repo.list(category)
        if project_only:
            context = repo.resolver.resolve()
            project_id = context.project_id if context else None
            entries = [e for e in entries if e.project_id == project_id]
        return format_index(entries, repo.now(), settings.stale_days)

    def forget(memory_id: str) -> str:
        """Delete a memory by full or partial id."""
        try:
            entry = repo.resolve(memory_id)
            if entry is None or not repo.delete(entry.id):
                return f'No memory found with ID starting with "{memory_id}"'
        except DevMemError as e:
            return f"Failed to forget memory: {e}"
        return f'Memory "{entry.title}" has been forgotten.'

    def update(memory_id: str, content: str | None = None, tags: list[str] | None = None) -> str:
        """Replace a memory's content and/or tags."""
        if content is None and tags is None:
            return "Please provide content or tags to update."
        try:
            memory = repo.update(memory_id, content=content, tags=tags)
        except DevMemError as e:
            return f"Failed to update memory: {e}"
        if memory is None:
            return f'No memory found with ID starting with "{memory_id}"'
        return (
            f"Memory updated successfully!\nID: {memory.id}\nTitle: {memory.title}\n"
            f"Tags: {', '.join(memory.tags) or '(none)'}"
        )

    def link(id1: str, id2: str, unlink: bool = False) -> str:
        """Create (or with unlink=True remove) a bidirectional link."""
        try:
            if unlink:
                if not relations.unlink(repo, id1, id2):
                    return "Failed to unlink memories: memory not found"
                return f"Unlinked {id1} and {id2}"
            pair = relations.link(repo, id1, id2)
        except DevMemError as e:
            return f"Failed to {'unlink' if unlink else 'link'} memories: {e}"
        if pair is None:
            return "Failed to link memories: memory not found"
        first, second = pair
        return (
            f'Linked:\n  "{first.title}"\n  "{second.title}"\n\n'
            "These memories will now reference each other."
        )

    def related(memory_id: str) -> str:
        """Show the memories related to one memory."""
        try:
            source = repo.get(memory_id)
        except DevMemError as e:
            return f"Failed to get related memories: {e}"
        if source is None:
            return f'No memory found with ID starting with "{memory_id}"'
        found = relations.get_related(repo, source.id)
        message = f"## {source.title}\n\n"
        if not found:
            return message + "No related memories found.\n\nUse link to create relationships."
        return message + f"**Related memories ({len(found)}):**\n\n" + _render(found)

    def merge(ids: list[str], title: str | None = None) -> str:
        """Merge memories into the first one."""
        try:
            merged_ids = {e.id for e in (repo.resolve(i) for i in ids) if e is not None}
            merged = relations.merge(repo, ids, new_title=title)
        except DevMemError as e:
            return f"Failed to merge memories: {e}"
        return (
            f"Merged {len(merged_ids)} memories into one:\n\n"
            f"Result:\n  ID: {merged.id}\n  Title: {merged.title}\n"
            f"  Tags: {', '.join(merged.tags) or '(none)'}"
        )

    def cleanup(dry_run: bool = False) -> str:
        """Remove expired memories."""
        report = lifecycle.cleanup(repo, dry_run=dry_run, now=repo.now())
        if not report.expired:
            return "No expired memories found."
        if dry_run:
            lines = ["Expired memories that would be deleted:", ""]
            lines += [f"- {e.title} (expired: {e.expires_at})" for e in report.expired]
            lines += ["", f"Total: {len(report.expired)} memories", "", "Run without dry_run to delete these memories."]
            return "\n".join(lines)
        return f"Cleaned up {report.deleted} expired memories."

    def stats() -> str:
        """Memory statistics."""
        return format_stats(
            analytics.memory_statistics(repo, stale_days=settings.stale_days), settings.stale_days
        )

    def graph(memory_id: str | None = None, depth: int | None = None) -> str:
        """Mermaid diagram of relationships, whole graph or around one memory."""
        try:
            g = relations.build_graph(repo, memory_id, depth or settings.graph_depth)
        except DevMemError as e:
            return f"Failed to generate graph: {e}"
        return relations.render_mermaid(g)

    def export(format: str = "json", category: str | None = None) -> str:
        """Export memories as json or markdown."""
        if format == "markdown":
            return analytics.export_markdown(repo, category)
        return analytics.export_json(repo, category)

    def tag(tag: str, query: str | None = None, category: str | None = None, dry_run: bool = False) -> str:
        """Add a tag to memories matching a query or category."""
        result = batch.add_tag(repo, tag, query=query, category=category, dry_run=dry_run)
        return format_batch_result(result, f"Would tag with #{tag}" if dry_run else f"Tagged with #{tag}")

    def untag(tag: str, query: str | None = None, category: str | None = None, dry_run: bool = False) -> str:
        """Remove a tag from memories matching a query or category."""
        result = batch.remove_tag(repo, tag, query=query, category=category, dry_run=dry_run)
        return format_batch_result(result, f"Would remove tag #{tag}" if dry_run else f"Removed tag #{tag}")

    def bulk_delete(
        expired: bool = False,
        stale: bool = False,
        query: str | None = None,
        category: str | None = None,
        dry_run: bool = True,
    ) -> str:
        """Delete memories matching all given filters. Previews by default."""
        try:
            result = batch.bulk_delete(
                repo, category=category, expired=expired, stale=stale, query=query,
                dry_run=dry_run, stale_days=settings.stale_days,
            )
        except DevMemError as e:
            return f"Failed to bulk delete: {e}"
        return format_batch_result(result, "Would delete" if dry_run else "Deleted")

    def context(directory: str | None = None, limit: int | None = None, verbose: bool = False) -> str:
        """Relevant memories for the current project and working directory."""
        workdir = Path(directory) if directory else Path.cwd()
        resolver = None
        if directory and isinstance(repo.resolver, GitProjectResolver):
            resolver = GitProjectResolver(workdir)
        session = gather_context(repo, workdir, limit or 5, resolver=resolver)
        change = session.change
        lines = []
        if change.current.project_name:
            if change.changed and change.previous and change.previous.project_name:
                lines.append(f"Project changed: {change.previous.project_name} -> {change.current.project_name}")
            elif change.changed:
                lines.append(f"Project: {change.current.project_name}")
            else:
                lines.append(f"Project: {change.current.project_name} (unchanged)")
        else:
            lines.append("Project: (none detected)")
        if verbose and session.patterns:
            lines.append("\nDetected file patterns:")
            lines += [f"  - {p.description} (tags: {', '.join(p.tags)})" for p in session.patterns]
        lines.append("")
        if session.memories:
            lines.append(_render(session.memories))
        else:
            lines.append("No relevant memories found for this context.")
        return "\n".join(lines)

    def reindex(dry_run: bool = False) -> str:
        """Rebuild the index from stored records."""
        report = repo.reconcile(dry_run=dry_run)
        if not report.changed:
            return "Index is consistent with stored records."
        verb = "Would reindex" if dry_run else "Reindexed"
        return (
            f"{verb}: {len(report.added)} added, {len(report.removed)} removed, "
            f"{len(report.refreshed)} refreshed"
        )

    return {
        "remember": remember,
        "recall": recall,
        "list": list_memories,
        "forget": forget,
        "update": update,
        "link": link,
        "related": related,
        "merge": merge,
        "cleanup": cleanup,
        "stats": stats,
        "graph": graph,
        "export": export,
        "tag": tag,
        "untag": untag,
        "bulk_delete": bulk_delete,
        "context": context,
        "reindex": reindex,
    }
