"""Tests for the python -m devmem entry point."""

from __future__ import annotations

from pathlib import Path

import pytest

from devmem.__main__ import main
from devmem.config import load_config
from devmem.project import GitProjectResolver
from devmem.repository import MemoryRepository


@pytest.fixture
def storage(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DEVMEM_STORAGE_DIR", str(tmp_path / "store"))
    monkeypatch.delenv("DEVMEM_STATE_DIR", raising=False)
    monkeypatch.setattr(GitProjectResolver, "resolve", lambda self: None)
    return tmp_path / "store"


class TestMain:
    def test_status(self, storage, capsys):
        assert main([]) == 0
        out = capsys.readouterr().out
        assert f"Storage folder: {storage}" in out
        assert "Memories: 0" in out
        assert "none detected" in out

    def test_stats(self, storage, capsys):
        MemoryRepository.from_config(load_config()).create("decision", "Alpha")
        assert main(["stats"]) == 0
        assert "**Total memories:** 1" in capsys.readouterr().out

    def test_cleanup_dry_run(self, storage, capsys):
        assert main(["cleanup", "--dry-run"]) == 0
        assert "No expired memories found." in capsys.readouterr().out

    def test_reindex(self, storage, capsys):
        assert main(["reindex"]) == 0
        assert "consistent" in capsys.readouterr().out

    def test_unknown_command(self, storage, capsys):
        assert main(["frobnicate"]) == 1
        assert "Usage:" in capsys.readouterr().out
