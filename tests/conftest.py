"""Shared test fixtures for skmembase."""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from skmembase.backup import BackupManager
from skmembase.store import LocalStore

STRONG_PASSWORD = "Abcdefghijkl1!"

# 2026-01-01T00:00:00Z, well before any backup the fake clock makes
OLD_MTIME = 1767225600


class FakeClock:
    """Deterministic clock for backup ids and incremental comparisons."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def write_memory(root: Path, rel: str, content: str, mtime: float = OLD_MTIME) -> Path:
    """Write a memory file and pin its modification time."""
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content.encode("utf-8"))
    os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Workspace with MEMORY.md (10 bytes) and memory/a.md (20 bytes)."""
    root = tmp_path / "workspace"
    root.mkdir()
    write_memory(root, "MEMORY.md", "Remember!\n")
    write_memory(root, "memory/a.md", "alpha notes go here\n")
    return root


@pytest.fixture
def store(tmp_path: Path) -> LocalStore:
    """Filesystem-backed message store."""
    return LocalStore(tmp_path / "store")


@pytest.fixture
def clock() -> FakeClock:
    """Clock starting at 2026-02-01T09:02:38.381Z."""
    return FakeClock(datetime(2026, 2, 1, 9, 2, 38, 381000, tzinfo=timezone.utc))


@pytest.fixture
def manager(store: LocalStore, workspace: Path, clock: FakeClock) -> BackupManager:
    """Backup manager wired to the local store and fake clock."""
    return BackupManager(store, workspace, "test-agent", clock=clock)


@pytest.fixture
def password() -> str:
    return STRONG_PASSWORD
