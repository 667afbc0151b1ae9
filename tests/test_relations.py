"""Tests for links, merging and the relation graph."""

from __future__ import annotations

import pytest

from devmem.errors import MemoryNotFoundError, MergeError, SelfLinkError
from devmem.relations import build_graph, get_related, link, merge, render_mermaid, unlink


class TestLink:
    def test_link_is_bidirectional(self, repo):
        a = repo.create("decision", "A")
        b = repo.create("decision", "B")

        first, second = link(repo, a.id[:8], b.id[:8])
        assert first.related_to == [b.id]
        assert second.related_to == [a.id]
        assert repo.get(a.id).related_to == [b.id]
        assert repo.resolve(b.id).related_to == [a.id]

    def test_idempotent(self, repo):
        a = repo.create("decision", "A")
        b = repo.create("decision", "B")
        link(repo, a.id, b.id)
        link(repo, b.id, a.id)
        assert repo.get(a.id).related_to == [b.id]
        assert repo.get(b.id).related_to == [a.id]

    def test_missing(self, repo):
        a = repo.create("decision", "A")
        assert link(repo, a.id, "missing") is None
        assert repo.get(a.id).related_to == []

    def test_self_link(self, repo):
        a = repo.create("decision", "A")
        with pytest.raises(SelfLinkError):
            link(repo, a.id, a.id[:8])

    def test_unlink(self, repo):
        a = repo.create("decision", "A")
        b = repo.create("decision", "B")
        link(repo, a.id, b.id)

        assert unlink(repo, a.id, b.id) is True
        assert repo.get(a.id).related_to == []
        assert repo.get(b.id).related_to == []
        assert unlink(repo, a.id, b.id) is True
        assert unlink(repo, a.id, "missing") is False


class TestRelated:
    def test_get_related(self, repo):
        a = repo.create("decision", "A")
        b = repo.create("decision", "B")
        c = repo.create("decision", "C")
        link(repo, a.id, b.id)
        link(repo, a.id, c.id)
        assert [m.id for m in get_related(repo, a.id)] == [b.id, c.id]

    def test_dangling_after_delete(self, repo):
        a = repo.create("decision", "A")
        b = repo.create("decision", "B")
        link(repo, a.id, b.id)
        repo.delete(a.id)

        assert get_related(repo, b.id) == []
        # weak reference stays until someone unlinks or edits it
        assert repo.get(b.id).related_to == [a.id]

    def test_unknown(self, repo):
        assert get_related(repo, "missing") == []


class TestMerge:
    def test_merge(self, repo):
        base = repo.create("decision", "# Database\nUse Postgres", ["db"])
        other = repo.create("learning", "# Indexes\nAdd them early", ["db", "perf"])

        merged = merge(repo, [base.id, other.id[:8]])
        assert merged.id == base.id
        assert merged.content == "# Database\nUse Postgres\n\n## Indexes\n\n# Indexes\nAdd them early"
        assert merged.tags == ["db", "perf"]
        assert repo.get(other.id) is None
        assert [e.id for e in repo.list()] == [base.id]

    def test_new_title(self, repo):
        base = repo.create("decision", "# Old\nbody")
        other = repo.create("decision", "Other")
        merged = merge(repo, [base.id, other.id], new_title="Fresh")
        assert merged.title == "Fresh"
        assert merged.content.startswith("# Fresh\nbody\n\n## Other")

    def test_relations_inherited(self, repo):
        base = repo.create("decision", "Base")
        other = repo.create("decision", "Other")
        outside = repo.create("decision", "Outside")
        link(repo, base.id, other.id)
        link(repo, other.id, outside.id)

        merged = merge(repo, [base.id, other.id])
        assert merged.related_to == [outside.id]
        assert repo.get(outside.id).related_to == [other.id, base.id]

    def test_needs_two(self, repo, content_store):
        base = repo.create("decision", "Base")
        before = content_store.read("index.json")
        with pytest.raises(MergeError):
            merge(repo, [base.id, "missing"])
        with pytest.raises(MergeError):
            merge(repo, [base.id, base.id[:8]])
        assert content_store.read("index.json") == before


class TestGraph:
    def _chain(self, repo, n):
        memories = [repo.create("decision", f"Node {i}") for i in range(n)]
        for left, right in zip(memories, memories[1:]):
            link(repo, left.id, right.id)
        return memories

    def test_depth_limit(self, repo):
        memories = self._chain(repo, 5)
        graph = build_graph(repo, memories[0].id, max_depth=2)
        assert [n.id for n in graph.nodes] == [m.id for m in memories[:3]]
        assert graph.depths[memories[2].id] == 2
        assert len(graph.edges) == 2

    def test_whole_graph_only_linked(self, repo):
        memories = self._chain(repo, 3)
        repo.create("decision", "Loner")
        graph = build_graph(repo)
        assert {n.id for n in graph.nodes} == {m.id for m in memories}
        assert graph.root is None
        assert len(graph.edges) == 2

    def test_unknown_root(self, repo):
        with pytest.raises(MemoryNotFoundError):
            build_graph(repo, "missing")

    def test_mermaid(self, repo):
        a = repo.create("decision", "Root memory")
        b = repo.create("learning", 'A "quoted" and rather long title here')
        link(repo, a.id, b.id)

        text = render_mermaid(build_graph(repo, a.id, max_depth=1))
        assert text.startswith("```mermaid\ngraph TD\n")
        assert '  ROOT["Root memory"]' in text
        assert "  style ROOT fill:#ff6,stroke:#333,stroke-width:4px" in text
        assert '  N0["A #quot;quoted#quot; and rather long ..."]' in text
        assert "  style N0 fill:#ffb" in text
        assert "  ROOT --- N0" in text
        assert text.endswith("Nodes: 2 (depth: 1)")

    def test_mermaid_empty(self, repo):
        text = render_mermaid(build_graph(repo))
        assert "No relationships yet" in text
        assert text.endswith("Total nodes: 0")
