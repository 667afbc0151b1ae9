"""Tests for the memory repository."""

from __future__ import annotations

import json
import uuid
from datetime import timedelta

import pytest

from conftest import PROJECT, START
from devmem import repository as repository_module
from devmem.errors import AmbiguousIdError, InvalidPriorityError, InvalidTTLError, SelfLinkError
from devmem.models import format_timestamp
from devmem.record import parse_record


def _fixed_ids(monkeypatch, *ids: str) -> None:
    pending = iter(uuid.UUID(i) for i in ids)
    monkeypatch.setattr(repository_module.uuid, "uuid4", lambda: next(pending))


class TestCreate:
    def test_create_and_get(self, repo):
        memory = repo.create("decision", "# Use Postgres\nNeed ACID", ["db"])

        loaded = repo.get(memory.id)
        assert loaded == memory
        assert loaded.title == "Use Postgres"
        assert loaded.tags == ["db"]
        assert loaded.created == loaded.updated == format_timestamp(START)
        assert loaded.project_id == PROJECT.project_id
        assert loaded.project_name == "app"
        assert loaded.priority == "normal"

    def test_record_written_under_category(self, repo, content_store):
        memory = repo.create("decision", "# Use Postgres\nNeed ACID")
        entry = repo.resolve(memory.id)
        assert entry.path == "memories/decision/2026-03-01-use-postgres.md"
        assert parse_record(content_store.read(entry.path)) == memory

    def test_index_entry(self, repo, content_store):
        memory = repo.create("learning", "Title line\nbody text", ["a", "b"])
        data = json.loads(content_store.read("index.json"))
        assert data["version"] == 1
        [entry] = data["memories"]
        assert entry["id"] == memory.id
        assert entry["snippet"] == "body text"
        assert entry["projectId"] == "github.com/acme/app"
        assert "content" not in entry

    def test_global(self, repo):
        memory = repo.create("preference", "Tabs over spaces", global_=True)
        assert memory.is_global
        assert memory.project_id is None
        assert memory.project_name is None

    def test_ttl(self, repo):
        memory = repo.create("task", "Ship it", ttl="7d")
        assert memory.expires_at == format_timestamp(START + timedelta(days=7))

    def test_invalid_ttl_writes_nothing(self, repo, content_store):
        with pytest.raises(InvalidTTLError):
            repo.create("task", "Ship it", ttl="abc")
        assert content_store.list_paths() == []
        assert content_store.read("index.json") is None

    def test_invalid_priority(self, repo, content_store):
        with pytest.raises(InvalidPriorityError):
            repo.create("task", "Ship it", priority="urgent")
        assert content_store.list_paths() == []

    def test_priority(self, repo):
        assert repo.create("task", "Ship it", priority="high").priority == "high"

    def test_path_collision(self, repo):
        first = repo.create("decision", "# Same title\none")
        second = repo.create("decision", "# Same title\ntwo")
        assert repo.resolve(first.id).path.endswith("2026-03-01-same-title.md")
        assert repo.resolve(second.id).path.endswith("2026-03-01-same-title-2.md")

    def test_related_to_links_back(self, repo):
        target = repo.create("decision", "Target")
        memory = repo.create("learning", "Follows up", related_to=[target.id[:8], "nope"])
        assert memory.related_to == [target.id]
        assert repo.get(target.id).related_to == [memory.id]

    def test_surrounding_whitespace_stripped(self, repo):
        memory = repo.create("task", "\nUse Postgres\nNeed ACID\n")
        assert memory.content == "Use Postgres\nNeed ACID"
        assert memory.title == "Use Postgres"
        assert repo.get(memory.id) == memory

        entry = repo.resolve(memory.id)
        assert entry.title == "Use Postgres"
        assert entry.snippet == "Need ACID"
        assert not repo.reconcile().changed


class TestResolve:
    def test_prefix(self, repo):
        memory = repo.create("task", "Ship it")
        assert repo.get(memory.id[:8]).id == memory.id

    def test_ambiguous_prefix(self, repo, monkeypatch):
        _fixed_ids(
            monkeypatch,
            "aaaa1111-0000-4000-8000-000000000000",
            "aaaa2222-0000-4000-8000-000000000000",
        )
        repo.create("task", "One")
        repo.create("task", "Two")

        with pytest.raises(AmbiguousIdError) as excinfo:
            repo.resolve("aaaa")
        assert len(excinfo.value.candidates) == 2
        assert repo.resolve("aaaa2").title == "Two"

    def test_exact_id_wins_over_prefix(self, repo, monkeypatch):
        _fixed_ids(
            monkeypatch,
            "aaaa1111-0000-4000-8000-000000000000",
            "aaaa1111-0000-4000-8000-000000000001",
        )
        repo.create("task", "One")
        repo.create("task", "Two")
        assert repo.resolve("aaaa1111-0000-4000-8000-000000000000").title == "One"

    def test_unknown(self, repo):
        assert repo.get("missing") is None
        assert repo.resolve("") is None


class TestUpdate:
    def test_update_content(self, repo, clock):
        memory = repo.create("decision", "# Old\nbody")
        clock.advance(hours=1)

        updated = repo.update(memory.id[:8], content="# New title\nnew body")
        assert updated.title == "New title"
        assert updated.created == memory.created
        assert updated.updated == format_timestamp(START + timedelta(hours=1))

        entry = repo.resolve(memory.id)
        assert entry.title == "New title"
        assert entry.snippet == "new body"
        assert entry.path == "memories/decision/2026-03-01-old.md"

    def test_update_tags_only(self, repo):
        memory = repo.create("decision", "Body", ["a"])
        updated = repo.update(memory.id, tags=["b", "c"])
        assert updated.tags == ["b", "c"]
        assert updated.content == "Body"

    def test_content_stripped(self, repo):
        memory = repo.create("decision", "Old")
        updated = repo.update(memory.id, content="\n\n# New\nbody\n")
        assert updated.content == "# New\nbody"
        assert updated.title == "New"
        assert repo.get(memory.id) == updated
        assert not repo.reconcile().changed

    def test_related_to_resolved_and_deduplicated(self, repo):
        memory = repo.create("decision", "Body")
        other = repo.create("decision", "Other")
        updated = repo.update(memory.id, related_to=[other.id[:8], "nope", other.id])
        assert updated.related_to == [other.id]

    def test_related_to_links_back(self, repo):
        a = repo.create("decision", "A")
        b = repo.create("decision", "B")

        repo.update(a.id, related_to=[b.id[:8]])
        assert repo.get(b.id).related_to == [a.id]
        assert repo.resolve(b.id).related_to == [a.id]

        repo.update(a.id, related_to=[])
        assert repo.get(a.id).related_to == []
        assert repo.get(b.id).related_to == []
        assert repo.resolve(b.id).related_to == []

    def test_related_to_self(self, repo, content_store):
        a = repo.create("decision", "A")
        before = content_store.read("index.json")
        with pytest.raises(SelfLinkError):
            repo.update(a.id, related_to=[a.id[:8]])
        assert content_store.read("index.json") == before
        assert repo.get(a.id).related_to == []

    def test_dangling_relation_kept(self, repo):
        a = repo.create("decision", "A")
        b = repo.create("decision", "B")
        c = repo.create("decision", "C")
        repo.update(a.id, related_to=[b.id])
        repo.delete(b.id)

        updated = repo.update(a.id, related_to=[b.id, c.id])
        assert updated.related_to == [b.id, c.id]
        assert repo.get(c.id).related_to == [a.id]

    def test_missing(self, repo):
        assert repo.update("missing", content="x") is None


class TestDelete:
    def test_delete(self, repo, content_store):
        memory = repo.create("task", "Ship it")
        path = repo.resolve(memory.id).path

        assert repo.delete(memory.id) is True
        assert repo.get(memory.id) is None
        assert not content_store.exists(path)
        assert repo.list() == []

    def test_delete_missing(self, repo):
        assert repo.delete("missing") is False


class TestList:
    def test_insertion_order_and_category(self, repo):
        a = repo.create("decision", "A")
        b = repo.create("learning", "B")
        c = repo.create("decision", "C")
        assert [e.id for e in repo.list()] == [a.id, b.id, c.id]
        assert [e.id for e in repo.list("decision")] == [a.id, c.id]
        assert repo.list("task") == []

    def test_expired_still_listed(self, repo, clock):
        repo.create("task", "Soon gone", ttl="1d")
        clock.advance(days=2)
        assert len(repo.list()) == 1


class TestReconcile:
    def test_consistent(self, repo):
        repo.create("task", "Ship it")
        report = repo.reconcile()
        assert not report.changed

    def test_orphan_record_added(self, repo, content_store):
        memory = repo.create("task", "Ship it")
        path = repo.resolve(memory.id).path
        text = content_store.read(path)
        content_store.delete("index.json")

        report = repo.reconcile()
        assert report.added == [memory.id]
        assert repo.resolve(memory.id).path == path
        assert parse_record(text) == repo.get(memory.id)

    def test_missing_record_removed(self, repo, content_store):
        keep = repo.create("task", "Keep")
        gone = repo.create("task", "Gone")
        content_store.delete(repo.resolve(gone.id).path)

        report = repo.reconcile()
        assert report.removed == [gone.id]
        assert [e.id for e in repo.list()] == [keep.id]

    def test_edited_record_refreshed(self, repo, content_store):
        memory = repo.create("task", "# Old\nbody")
        path = repo.resolve(memory.id).path
        content_store.write(path, content_store.read(path).replace("# Old", "# Edited"))

        report = repo.reconcile()
        assert report.refreshed == [memory.id]
        assert repo.resolve(memory.id).title == "Edited"

    def test_unreadable_skipped(self, repo, content_store):
        content_store.write("memories/task/broken.md", "no header here")
        report = repo.reconcile()
        assert report.unreadable == ["memories/task/broken.md"]
        assert not report.changed

    def test_dry_run(self, repo, content_store):
        memory = repo.create("task", "Ship it")
        content_store.delete(repo.resolve(memory.id).path)

        report = repo.reconcile(dry_run=True)
        assert report.removed == [memory.id]
        assert repo.resolve(memory.id) is not None
