"""Bidirectional relations between memories: link, unlink, merge, graph.

Relations are weak references. Deleting a memory does not remove its id
from the ``relatedTo`` lists of other memories; lookups skip ids that no
longer resolve.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from devmem.errors import MemoryNotFoundError, MergeError, SelfLinkError
from devmem.models import IndexEntry, Memory

if TYPE_CHECKING:
    from devmem.repository import MemoryRepository

logger = logging.getLogger(__name__)

DEFAULT_GRAPH_DEPTH = 3
LABEL_MAX = 30

CATEGORY_COLORS = {
    "project": "#bbf",
    "decision": "#bfb",
    "preference": "#fbb",
    "learning": "#ffb",
    "task": "#fbf",
}
DEFAULT_COLOR = "#ddd"
ROOT_STYLE = "fill:#ff6,stroke:#333,stroke-width:4px"


# ── Link / unlink ─────────────────────────────────────────────


def link(
    repository: MemoryRepository, id1: str, id2: str
) -> tuple[Memory, Memory] | None:
    """Relate two memories both ways. Idempotent. None if either is missing."""
    first = repository.get(id1)
    second = repository.get(id2)
    if first is None or second is None:
        return None
    if first.id == second.id:
        raise SelfLinkError(f"Cannot link memory {first.id[:8]} to itself")

    # update() mirrors the relation onto the other side
    if second.id not in first.related_to:
        first = repository.update(first.id, related_to=[*first.related_to, second.id]) or first
        second = repository.get(second.id) or second
    if first.id not in second.related_to:
        second = repository.update(second.id, related_to=[*second.related_to, first.id]) or second
        first = repository.get(first.id) or first

    logger.info("Linked %s <-> %s", first.id[:8], second.id[:8])
    return first, second


def unlink(repository: MemoryRepository, id1: str, id2: str) -> bool:
    """Remove the relation both ways. True even if they were not related."""
    first = repository.get(id1)
    second = repository.get(id2)
    if first is None or second is None:
        return False

    if second.id in first.related_to:
        repository.update(first.id, related_to=[r for r in first.related_to if r != second.id])
        second = repository.get(second.id) or second
    if first.id in second.related_to:
        repository.update(second.id, related_to=[r for r in second.related_to if r != first.id])

    logger.info("Unlinked %s <-> %s", first.id[:8], second.id[:8])
    return True


def get_related(repository: MemoryRepository, memory_id: str) -> list[Memory]:
    """Full memories related to ``memory_id``, skipping dangling references."""
    memory = repository.get(memory_id)
    if memory is None:
        return []

    related = []
    for related_id in memory.related_to:
        other = repository.get(related_id)
        if other is not None:
            related.append(other)
        else:
            logger.debug("Skipping dangling relation %s -> %s", memory.id[:8], related_id[:8])
    return related


# ── Merge ─────────────────────────────────────────────────────


def merge(
    repository: MemoryRepository, ids: list[str], new_title: str | None = None
) -> Memory:
    """Fold several memories into the first one and delete the rest.

    Content is concatenated with each absorbed memory under a ``## <title>``
    heading; tags and relations are unioned. Raises MergeError, without
    touching anything, unless at least two distinct memories resolve.
    """
    memories: list[Memory] = []
    for memory_id in ids:
        memory = repository.get(memory_id)
        if memory is None:
            logger.warning("Merge: skipping unknown memory %s", memory_id)
            continue
        if all(m.id != memory.id for m in memories):
            memories.append(memory)

    if len(memories) < 2:
        raise MergeError("Need at least 2 valid memories to merge")

    base, others = memories[0], memories[1:]
    merged_ids = {m.id for m in memories}

    content = base.content
    if new_title:
        body = content.split("\n", 1)[1] if "\n" in content else ""
        content = f"# {new_title}\n{body}" if body else f"# {new_title}"
    for other in others:
        content += f"\n\n## {other.title}\n\n{other.content}"

    tags: list[str] = []
    related: list[str] = []
    for memory in memories:
        tags.extend(t for t in memory.tags if t not in tags)
        related.extend(r for r in memory.related_to if r not in related and r not in merged_ids)

    merged = repository.update(base.id, content=content, tags=tags, related_to=related)
    if merged is None:
        raise MergeError(f"Base memory {base.id[:8]} disappeared during merge")

    for other in others:
        repository.delete(other.id)

    logger.info("Merged %d memories into %s", len(memories), merged.id[:8])
    return merged


# ── Graph ─────────────────────────────────────────────────────


@dataclass
class Graph:
    """Node/edge view of the relation graph."""

    nodes: list[IndexEntry] = field(default_factory=list)
    edges: list[tuple[str, str]] = field(default_factory=list)
    root: str | None = None
    max_depth: int | None = None
    depths: dict[str, int] = field(default_factory=dict)


def _collect_edges(nodes: list[IndexEntry]) -> list[tuple[str, str]]:
    node_ids = {n.id for n in nodes}
    seen: set[frozenset[str]] = set()
    edges = []
    for node in nodes:
        for related_id in node.related_to:
            key = frozenset((node.id, related_id))
            if related_id in node_ids and related_id != node.id and key not in seen:
                seen.add(key)
                edges.append((node.id, related_id))
    return edges


def build_graph(
    repository: MemoryRepository,
    root_id: str | None = None,
    max_depth: int = DEFAULT_GRAPH_DEPTH,
) -> Graph:
    """Relation graph from ``root_id`` (BFS to ``max_depth``), or the whole linked set."""
    entries = repository.list()
    by_id = {e.id: e for e in entries}

    if root_id is None:
        nodes: list[IndexEntry] = []
        added: set[str] = set()
        for entry in entries:
            if not entry.related_to:
                continue
            for candidate in [entry, *(by_id.get(r) for r in entry.related_to)]:
                if candidate is not None and candidate.id not in added:
                    added.add(candidate.id)
                    nodes.append(candidate)
        return Graph(nodes=nodes, edges=_collect_edges(nodes))

    root = repository.resolve(root_id)
    if root is None:
        raise MemoryNotFoundError(root_id)

    graph = Graph(root=root.id, max_depth=max_depth)
    queue: deque[tuple[str, int]] = deque([(root.id, 0)])
    while queue:
        memory_id, depth = queue.popleft()
        if memory_id in graph.depths or depth > max_depth:
            continue
        entry = by_id.get(memory_id)
        if entry is None:
            continue
        graph.depths[memory_id] = depth
        graph.nodes.append(entry)
        for related_id in entry.related_to:
            if related_id not in graph.depths:
                queue.append((related_id, depth + 1))

    graph.edges = _collect_edges(graph.nodes)
    return graph


def _label(title: str) -> str:
    label = title if len(title) <= LABEL_MAX else title[: LABEL_MAX - 3] + "..."
    return label.replace('"', "#quot;")


def render_mermaid(graph: Graph) -> str:
    """Render a graph as a mermaid ``graph TD`` block."""
    lines = ["```mermaid", "graph TD", ""]

    if not graph.nodes:
        lines.append("  A[No relationships yet]")
        lines.append("  style A fill:#f9f,stroke:#333,stroke-width:2px")
    else:
        node_names: dict[str, str] = {}
        counter = 0
        for node in graph.nodes:
            if node.id == graph.root:
                name = "ROOT"
            else:
                name = f"N{counter}"
                counter += 1
            node_names[node.id] = name
            lines.append(f'  {name}["{_label(node.title)}"]')
            if node.id == graph.root:
                lines.append(f"  style {name} {ROOT_STYLE}")
            else:
                lines.append(f"  style {name} fill:{CATEGORY_COLORS.get(node.category, DEFAULT_COLOR)}")
        lines.append("")
        for a, b in graph.edges:
            lines.append(f"  {node_names[a]} --- {node_names[b]}")

    lines.append("```")
    lines.append("")
    if graph.root is not None:
        lines.append(f"Nodes: {len(graph.nodes)} (depth: {graph.max_depth})")
    else:
        lines.append(f"Total nodes: {len(graph.nodes)}")
    return "\n".join(lines)
