"""Tests for the memory file scanner."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from conftest import OLD_MTIME, write_memory

from skmembase.scanner import scan


class TestScan:
    """Discovery of MEMORY.md and memory/**/*.md."""

    def test_finds_top_level_and_memory_dir(self, workspace: Path):
        """MEMORY.md and memory/a.md are both found, MEMORY.md first."""
        files = scan(workspace)
        assert [f.path for f in files] == ["MEMORY.md", "memory/a.md"]

    def test_reads_content_size_and_mtime(self, workspace: Path):
        """Each record carries content, byte size and UTC mtime."""
        files = {f.path: f for f in scan(workspace)}

        top = files["MEMORY.md"]
        assert top.content == b"Remember!\n"
        assert top.size == 10
        assert top.modified_at == datetime.fromtimestamp(OLD_MTIME, tz=timezone.utc)
        assert top.modified_at.tzinfo is not None

        assert files["memory/a.md"].size == 20

    def test_nested_directories(self, workspace: Path):
        """Deeply nested notes use POSIX relative paths."""
        write_memory(workspace, "memory/projects/2026/q1.md", "plans\n")
        paths = [f.path for f in scan(workspace)]
        assert "memory/projects/2026/q1.md" in paths

    def test_sorted_order(self, workspace: Path):
        """memory/ files come back in sorted path order."""
        write_memory(workspace, "memory/z.md", "z")
        write_memory(workspace, "memory/b.md", "b")
        paths = [f.path for f in scan(workspace)]
        assert paths == ["MEMORY.md", "memory/a.md", "memory/b.md", "memory/z.md"]

    def test_ignores_other_files(self, workspace: Path):
        """Only markdown under memory/ and the top MEMORY.md count."""
        write_memory(workspace, "memory/notes.txt", "nope")
        write_memory(workspace, "other/readme.md", "nope")
        write_memory(workspace, "NOTES.md", "nope")
        paths = [f.path for f in scan(workspace)]
        assert paths == ["MEMORY.md", "memory/a.md"]

    def test_excludes_dependency_dirs(self, workspace: Path):
        """node_modules and friends under memory/ are skipped."""
        write_memory(workspace, "memory/node_modules/pkg/README.md", "vendored")
        write_memory(workspace, "memory/.venv/lib/doc.md", "vendored")
        paths = [f.path for f in scan(workspace)]
        assert not any("node_modules" in p or ".venv" in p for p in paths)

    def test_preserves_line_endings(self, tmp_path: Path):
        """CRLF content is read byte-for-byte."""
        write_memory(tmp_path, "MEMORY.md", "line one\r\nline two\r\n")
        files = scan(tmp_path)
        assert files[0].content == b"line one\r\nline two\r\n"

    def test_only_memory_dir(self, tmp_path: Path):
        """Works without a top-level MEMORY.md."""
        write_memory(tmp_path, "memory/solo.md", "alone")
        assert [f.path for f in scan(tmp_path)] == ["memory/solo.md"]

    def test_empty_workspace(self, tmp_path: Path):
        """No memory files gives an empty list."""
        assert scan(tmp_path) == []

    def test_missing_workspace(self, tmp_path: Path):
        """A workspace that does not exist gives an empty list."""
        assert scan(tmp_path / "nope") == []

    def test_accepts_string_path(self, workspace: Path):
        assert len(scan(str(workspace))) == 2

    def test_non_utf8_file(self, workspace: Path):
        """A Latin-1 note is read as raw bytes instead of failing the scan."""
        (workspace / "memory" / "latin.md").write_bytes(b"caf\xe9\n")
        files = {f.path: f for f in scan(workspace)}
        assert files["memory/latin.md"].content == b"caf\xe9\n"
        assert files["memory/latin.md"].size == 5
