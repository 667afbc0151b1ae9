"""Tests for batch tagging and bulk deletion."""

from __future__ import annotations

import pytest

from devmem.batch import add_tag, bulk_delete, remove_tag
from devmem.errors import BatchFilterError
from devmem.project import ProjectContext


@pytest.fixture
def aged_repo(repo, clock):
    """Three memories untouched for 100 days, then two fresh ones."""
    stale = [repo.create("learning", f"Old note {i}", ["old"]) for i in range(3)]
    clock.advance(days=100)
    fresh = [repo.create("learning", f"New note {i}") for i in range(2)]
    return repo, stale, fresh


class TestTagging:
    def test_add_tag_by_query(self, repo):
        a = repo.create("decision", "Postgres setup", ["db"])
        b = repo.create("decision", "Redis setup")

        result = add_tag(repo, "infra", query="postgres")
        assert result.ids == [a.id]
        assert result.succeeded == 1
        assert repo.get(a.id).tags == ["db", "infra"]
        assert repo.get(b.id).tags == []

    def test_add_tag_by_category(self, repo):
        a = repo.create("decision", "A")
        repo.create("learning", "B")
        result = add_tag(repo, "x", category="decision")
        assert result.ids == [a.id]

    def test_already_tagged_counts_as_success(self, repo):
        a = repo.create("decision", "A", ["x"])
        result = add_tag(repo, "x")
        assert result.succeeded == 1
        assert repo.get(a.id).tags == ["x"]

    def test_remove_tag(self, repo):
        a = repo.create("decision", "A", ["x", "y"])
        repo.create("decision", "B", ["y"])
        result = remove_tag(repo, "x")
        assert result.ids == [a.id]
        assert repo.get(a.id).tags == ["y"]

    def test_query_spans_projects(self, repo, resolver):
        mine = repo.create("decision", "Postgres here")
        resolver.context = ProjectContext("github.com/acme/other", "other")
        theirs = repo.create("decision", "Postgres there")

        result = add_tag(repo, "db", query="postgres")
        assert sorted(result.ids) == sorted([mine.id, theirs.id])

    def test_dry_run_matches_real_run(self, repo, content_store):
        repo.create("decision", "Postgres A")
        repo.create("decision", "Postgres B")
        repo.create("decision", "Redis")
        before = content_store.read("index.json")

        preview = add_tag(repo, "db", query="postgres", dry_run=True)
        assert preview.dry_run
        assert content_store.read("index.json") == before

        real = add_tag(repo, "db", query="postgres")
        assert preview.ids == real.ids

    def test_item_failure_is_isolated(self, repo, monkeypatch):
        a = repo.create("decision", "A")
        b = repo.create("decision", "B")
        real_update = repo.update

        def flaky_update(memory_id, **kwargs):
            if memory_id == a.id:
                raise OSError("read-only")
            return real_update(memory_id, **kwargs)

        monkeypatch.setattr(repo, "update", flaky_update)
        result = add_tag(repo, "x")
        assert result.processed == 2
        assert result.succeeded == 1
        assert result.failed == 1
        assert result.items[0].error == "read-only"
        assert repo.get(b.id).tags == ["x"]


class TestBulkDelete:
    def test_requires_a_filter(self, repo):
        with pytest.raises(BatchFilterError):
            bulk_delete(repo)

    def test_stale_dry_run(self, aged_repo):
        repo, stale, fresh = aged_repo
        result = bulk_delete(repo, stale=True)
        assert result.dry_run
        assert result.ids == [m.id for m in stale]
        assert len(repo.list()) == 5

    def test_stale_delete(self, aged_repo):
        repo, stale, fresh = aged_repo
        preview = bulk_delete(repo, stale=True, dry_run=True)
        result = bulk_delete(repo, stale=True, dry_run=False)
        assert result.ids == preview.ids
        assert result.succeeded == 3
        assert [e.id for e in repo.list()] == [m.id for m in fresh]

    def test_expired(self, repo, clock):
        gone = repo.create("task", "Soon", ttl="1d")
        repo.create("task", "Later", ttl="1y")
        clock.advance(days=2)
        result = bulk_delete(repo, expired=True, dry_run=False)
        assert result.ids == [gone.id]
        assert len(repo.list()) == 1

    def test_filters_intersect(self, repo, clock):
        match = repo.create("task", "Postgres migration", ttl="1d")
        repo.create("task", "Redis migration", ttl="1d")
        repo.create("task", "Postgres upgrade")
        clock.advance(days=2)
        result = bulk_delete(repo, expired=True, query="postgres")
        assert result.ids == [match.id]

    def test_custom_stale_days(self, aged_repo):
        repo, stale, fresh = aged_repo
        result = bulk_delete(repo, stale=True, stale_days=200)
        assert result.ids == []
