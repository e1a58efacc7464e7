"""
Auto-backup — incremental backup when an agent session ends.

Meant to be called by whatever process hosts the agent. Runs at most
once per ``min_interval`` seconds and never raises: a failed
auto-backup is logged and the session carries on.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from .backup import BackupManager
from .config import AutoBackupConfig
from .models import BackupResult

logger = logging.getLogger("skmembase.auto_backup")


class AutoBackup:
    """Throttled end-of-session backup.

    Args:
        manager: Backup manager to run backups with.
        password: Encryption password.
        enabled: Master switch.
        min_interval: Minimum seconds between successful runs.
        clock: Returns the current aware UTC time.
    """

    def __init__(
        self,
        manager: BackupManager,
        password: str,
        enabled: bool = True,
        min_interval: int = 3600,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.manager = manager
        self._password = password
        self.enabled = enabled
        self.min_interval = min_interval
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.last_backup_at: Optional[datetime] = None

    @classmethod
    def from_config(
        cls, manager: BackupManager, password: str, config: AutoBackupConfig,
    ) -> "AutoBackup":
        return cls(
            manager,
            password,
            enabled=config.enabled and config.on_agent_end,
            min_interval=config.min_interval,
        )

    def due(self) -> bool:
        """Whether enough time has passed since the last successful run."""
        if self.last_backup_at is None:
            return True
        elapsed = (self._clock() - self.last_backup_at).total_seconds()
        return elapsed >= self.min_interval

    def on_agent_end(self) -> Optional[BackupResult]:
        """Run an incremental backup if enabled and due.

        Returns:
            BackupResult, or None if skipped or failed.
        """
        if not self.enabled:
            return None

        if not self.due():
            logger.info("Skipping auto-backup (too soon since last backup)")
            return None

        try:
            result = self.manager.backup(self._password, incremental=True)
        except Exception as exc:
            logger.error("Auto-backup failed: %s", exc)
            return None

        self.last_backup_at = self._clock()
        logger.info(
            "Auto-backup completed: %s (%d files)", result.backup_id, result.file_count,
        )
        return result
