"""
Memory file scanner.

Finds the agent's memory files inside a workspace:

    <workspace>/
    ├── MEMORY.md              # top-level memory file
    └── memory/
        └── **/*.md            # topical memory notes

Dependency and cache directories are skipped.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

from .models import MemoryFile

logger = logging.getLogger("skmembase.scanner")

ROOT_MEMORY_FILE = "MEMORY.md"
MEMORY_DIR = "memory"
MEMORY_GLOB = "**/*.md"

EXCLUDE_DIRS = {"node_modules", ".venv", "venv", "__pycache__", ".git"}


def _should_exclude(rel: Path) -> bool:
    """Check if any path component is an excluded directory."""
    return any(part in EXCLUDE_DIRS for part in rel.parts[:-1])


def _read_memory_file(root: Path, filepath: Path) -> MemoryFile:
    """Read a single file into a MemoryFile record.

    Args:
        root: Workspace root.
        filepath: Absolute path of the file.

    Returns:
        MemoryFile with POSIX relative path, content and stat data.
    """
    stat = filepath.stat()
    return MemoryFile(
        path=filepath.relative_to(root).as_posix(),
        content=filepath.read_bytes(),
        modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        size=stat.st_size,
    )


def scan(workspace_root: Union[str, Path]) -> list[MemoryFile]:
    """Scan a workspace for memory files.

    ``MEMORY.md`` comes first, followed by ``memory/**/*.md`` in
    sorted path order.

    Args:
        workspace_root: Workspace directory.

    Returns:
        list[MemoryFile]: Empty if the workspace or files are missing.
    """
    root = Path(workspace_root).expanduser()
    if not root.is_dir():
        logger.debug("Workspace %s does not exist", root)
        return []

    paths: list[Path] = []

    top = root / ROOT_MEMORY_FILE
    if top.is_file():
        paths.append(top)

    memory_dir = root / MEMORY_DIR
    if memory_dir.is_dir():
        for filepath in sorted(memory_dir.glob(MEMORY_GLOB)):
            if not filepath.is_file():
                continue
            if _should_exclude(filepath.relative_to(root)):
                continue
            paths.append(filepath)

    files = [_read_memory_file(root, p) for p in paths]
    logger.info("Scanned %s: %d memory files", root, len(files))
    return files
