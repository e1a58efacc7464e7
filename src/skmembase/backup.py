"""
Encrypted memory backup and restore.

Scans the workspace for memory files, seals each one with the
backup password, and uploads it to the message store as one
member of a backup set. Restores, lists, and diffs those sets.

Remote layout (per agent):
    owner: openclaw-backup-<agent_name>
    └── backup-2026-02-01T09-02-38-381Z     # one bucket per backup set
        ├── backup-...-381Z_0              # member 0: MEMORY.md
        ├── backup-...-381Z_1              # member 1: memory/a.md
        └── ...

Backup ids encode their UTC creation time, so they sort
lexicographically by age. Sets are append-only while being created
and read-only afterwards. The store has no delete, so neither do we.
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Callable, Optional, Union

import requests

from .diff import BackupDiff, compare_fingerprints, fingerprint_members
from .encryption import DecryptionError, decrypt, encrypt
from .models import (
    BackupMember,
    BackupResult,
    BackupSummary,
    CleanupPlan,
    LocalStatus,
    MembaseMessage,
    MemberMetadata,
    RemoteStatus,
    RestoreResult,
    StatusReport,
)
from .scanner import scan
from .store import MembaseError, MessageStore

logger = logging.getLogger("skmembase.backup")

OWNER_PREFIX = "openclaw-backup-"
BACKUP_PREFIX = "backup-"

_BACKUP_ID_RE = re.compile(
    r"^backup-(\d{4})-(\d{2})-(\d{2})T(\d{2})-(\d{2})-(\d{2})-(\d{3})Z$"
)


class BackupError(Exception):
    """Base class for backup engine errors."""


class NoFilesFoundError(BackupError):
    """Raised when a backup finds no memory files to upload."""


class BackupNotFoundError(BackupError):
    """Raised when a backup id has no members on the store."""


class UnsupportedOperationError(BackupError):
    """Raised for operations the store cannot perform (delete)."""


class UnsafePathError(BackupError):
    """Raised when a member would be restored outside the workspace."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_backup_id(now: datetime) -> str:
    """Build a time-sortable backup id.

    ``2026-02-01T09:02:38.381Z`` becomes
    ``backup-2026-02-01T09-02-38-381Z``.

    Args:
        now: Creation time. Naive values are taken as UTC.

    Returns:
        str: The backup id.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    iso = now.strftime("%Y-%m-%dT%H:%M:%S") + f".{now.microsecond // 1000:03d}Z"
    return BACKUP_PREFIX + iso.replace(":", "-").replace(".", "-")


def parse_backup_timestamp(backup_id: str) -> Optional[datetime]:
    """Recover the creation time encoded in a backup id.

    Args:
        backup_id: Id produced by :func:`generate_backup_id`.

    Returns:
        Aware UTC datetime, or None if the id is not in that format.
    """
    match = _BACKUP_ID_RE.match(backup_id)
    if not match:
        return None
    year, month, day, hour, minute, second, millis = (int(g) for g in match.groups())
    try:
        return datetime(
            year, month, day, hour, minute, second, millis * 1000,
            tzinfo=timezone.utc,
        )
    except ValueError:
        return None


def _message_timestamp(now: datetime) -> str:
    """Upload time in the ``YYYY-MM-DD HH:MM:SS`` form Membase expects."""
    return now.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


class BackupManager:
    """Encrypted, incremental backups of an agent's memory files.

    Args:
        store: Where backup sets are uploaded.
        workspace_dir: Workspace holding MEMORY.md and memory/.
        agent_name: Agent whose backups these are.
        clock: Returns the current aware UTC time. Defaults to now().
    """

    def __init__(
        self,
        store: MessageStore,
        workspace_dir: Union[str, Path],
        agent_name: str,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.workspace_dir = Path(workspace_dir).expanduser()
        self.agent_name = agent_name
        self.owner = f"{OWNER_PREFIX}{agent_name}"
        self._clock = clock or _utcnow

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------

    def backup(self, password: str, incremental: bool = False) -> BackupResult:
        """Scan, encrypt, and upload memory files as a new backup set.

        With ``incremental``, only files modified after the newest
        existing backup are uploaded. If none were, no set is created
        and the result points at the previous backup (``created=False``).

        Args:
            password: Encryption password.
            incremental: Only upload files changed since the last backup.

        Returns:
            BackupResult describing the run.

        Raises:
            NoFilesFoundError: If the workspace has no memory files.
        """
        all_files = scan(self.workspace_dir)
        if not all_files:
            raise NoFilesFoundError(
                f"No memory files found to backup in {self.workspace_dir}"
            )

        files = all_files
        skipped = 0

        if incremental:
            latest = self.get_latest_backup()
            since = latest.timestamp if latest else None
            if latest is None or since is None:
                logger.info("No previous backup found, doing full backup")
            else:
                files = [f for f in all_files if f.modified_at > since]
                skipped = len(all_files) - len(files)

                if not files:
                    logger.info("No files changed since %s", latest.id)
                    return BackupResult(
                        backup_id=latest.id,
                        timestamp=self._clock(),
                        incremental=True,
                        skipped_files=skipped,
                        created=False,
                    )

                logger.info(
                    "Incremental backup since %s: %d changed, %d unchanged",
                    latest.id, len(files), skipped,
                )

        backup_id = generate_backup_id(self._clock())
        total_size = 0

        for seq, memory_file in enumerate(files):
            logger.debug("Encrypting %s", memory_file.path)
            blob = encrypt(memory_file.content, password)

            metadata = MemberMetadata(
                file=memory_file.path,
                timestamp=memory_file.modified_at.isoformat(),
                size=memory_file.size,
                incremental=incremental,
            )
            message = MembaseMessage(
                id=f"{backup_id}-{seq}",
                name=self.agent_name,
                content=blob.to_json(),
                metadata=metadata.model_dump(),
                timestamp=_message_timestamp(self._clock()),
            )

            self.store.upload_message(
                self.owner, f"{backup_id}_{seq}", message, bucket=backup_id,
            )
            total_size += memory_file.size

        logger.info(
            "Backup created: %s (%d files, %d bytes)",
            backup_id, len(files), total_size,
        )

        return BackupResult(
            backup_id=backup_id,
            file_count=len(files),
            total_size=total_size,
            timestamp=self._clock(),
            incremental=incremental,
            skipped_files=skipped,
            created=True,
        )

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def _fetch_members(self, backup_id: str) -> list[MembaseMessage]:
        messages = self.store.get_conversation(self.owner, backup_id)
        if not messages:
            raise BackupNotFoundError(f"Backup not found: {backup_id}")
        return messages

    def _restore_target(self, rel_path: str) -> Path:
        """Resolve a member path inside the workspace.

        Raises:
            UnsafePathError: If the path is absolute or escapes the workspace.
        """
        root = self.workspace_dir.resolve()
        if PurePosixPath(rel_path).is_absolute() or Path(rel_path).is_absolute():
            raise UnsafePathError(f"Refusing absolute path in backup: {rel_path}")

        target = (root / rel_path).resolve()
        if target == root or root not in target.parents:
            raise UnsafePathError(f"Refusing path outside workspace: {rel_path}")
        return target

    def restore(self, backup_id: str, password: str) -> RestoreResult:
        """Download, decrypt, and write a backup set into the workspace.

        Every member is decrypted before the first file is written,
        so a wrong password or a corrupted member leaves the
        workspace untouched.

        Args:
            backup_id: Backup set to restore.
            password: Decryption password.

        Returns:
            RestoreResult describing the restored files.

        Raises:
            BackupNotFoundError: If the backup has no members.
            DecryptionError: Wrong password or corrupted member.
            UnsafePathError: If a member path escapes the workspace.
        """
        messages = self._fetch_members(backup_id)
        logger.info("Found %d files in %s", len(messages), backup_id)

        decrypted: list[tuple[BackupMember, Path, bytes]] = []
        for seq, message in enumerate(messages):
            try:
                member = BackupMember.from_message(message, default_seq=seq)
            except ValueError as exc:
                raise DecryptionError(
                    f"Backup member {message.id} is malformed"
                ) from exc

            content = decrypt(member.blob, password)
            target = self._restore_target(member.metadata.file)
            decrypted.append((member, target, content))

        total_size = 0
        restored: list[str] = []
        for member, target, content in decrypted:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
            total_size += member.metadata.size
            restored.append(member.metadata.file)
            logger.debug("Restored %s (%d bytes)", member.metadata.file, len(content))

        logger.info(
            "Restored %d files from %s to %s",
            len(restored), backup_id, self.workspace_dir,
        )

        return RestoreResult(
            backup_id=backup_id,
            file_count=len(restored),
            total_size=total_size,
            timestamp=messages[0].timestamp or self._clock().isoformat(),
            agent_name=self.agent_name,
            files=restored,
        )

    # ------------------------------------------------------------------
    # Listing and status
    # ------------------------------------------------------------------

    def list_backups(self) -> list[BackupSummary]:
        """List every backup set for this agent, newest first.

        A set whose members cannot be fetched is logged and skipped.

        Returns:
            list[BackupSummary]: Sorted by encoded creation time, descending.
        """
        backups: list[BackupSummary] = []

        for conv_id in self.store.list_conversations(self.owner):
            if not conv_id.startswith(BACKUP_PREFIX):
                continue
            try:
                messages = self.store.get_conversation(self.owner, conv_id)
            except (MembaseError, requests.RequestException, OSError, ValueError) as exc:
                logger.warning("Failed to get backup info for %s: %s", conv_id, exc)
                continue

            total_size = 0
            for message in messages:
                try:
                    total_size += int(message.metadata_dict.get("size") or 0)
                except (TypeError, ValueError):
                    continue

            backups.append(BackupSummary(
                id=conv_id,
                timestamp=parse_backup_timestamp(conv_id),
                file_count=len(messages),
                total_size=total_size,
            ))

        oldest = datetime.min.replace(tzinfo=timezone.utc)
        backups.sort(key=lambda b: (b.timestamp or oldest, b.id), reverse=True)
        return backups

    def get_latest_backup(self) -> Optional[BackupSummary]:
        """Newest backup set, or None if there are none."""
        backups = self.list_backups()
        return backups[0] if backups else None

    def get_status(self) -> StatusReport:
        """Local memory files vs remote backup count."""
        local_files = scan(self.workspace_dir)
        backups = self.list_backups()

        return StatusReport(
            local=LocalStatus(
                file_count=len(local_files),
                total_size=sum(f.size for f in local_files),
            ),
            remote=RemoteStatus(backup_count=len(backups)),
        )

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def delete_backup(self, backup_id: str) -> None:
        """Delete a backup set.

        Membase Hub has no delete API, so this always fails.

        Raises:
            UnsupportedOperationError: Always.
        """
        raise UnsupportedOperationError(
            f"Cannot delete {backup_id}: the Membase store has no delete operation"
        )

    def plan_cleanup(self, keep_last: int = 10) -> CleanupPlan:
        """Report which backups a keep-last-N policy would drop.

        Purely advisory; nothing is deleted.

        Args:
            keep_last: Number of newest backups to keep.

        Returns:
            CleanupPlan with the older backups as candidates.
        """
        if keep_last < 0:
            raise ValueError("keep_last must be zero or positive")

        backups = self.list_backups()
        return CleanupPlan(
            total=len(backups),
            keep_last=keep_last,
            candidates=backups[keep_last:],
        )

    # ------------------------------------------------------------------
    # Diff
    # ------------------------------------------------------------------

    def diff_backups(self, backup_id1: str, backup_id2: str, password: str) -> BackupDiff:
        """Compare the decrypted contents of two backup sets.

        Args:
            backup_id1: The baseline (usually older) set.
            backup_id2: The set compared against the baseline.
            password: Password for both sets.

        Returns:
            BackupDiff: added / removed / modified paths, sorted. Sets
            with no decryptable member are listed in ``unreadable``.

        Raises:
            BackupNotFoundError: If either set has no members.
        """
        with ThreadPoolExecutor(max_workers=2) as pool:
            first = pool.submit(self.store.get_conversation, self.owner, backup_id1)
            second = pool.submit(self.store.get_conversation, self.owner, backup_id2)
            messages1, messages2 = first.result(), second.result()

        if not messages1:
            raise BackupNotFoundError(f"Backup not found: {backup_id1}")
        if not messages2:
            raise BackupNotFoundError(f"Backup not found: {backup_id2}")

        fingerprints1 = fingerprint_members(messages1, password)
        fingerprints2 = fingerprint_members(messages2, password)
        diff = compare_fingerprints(fingerprints1, fingerprints2)

        for backup_id, fingerprints in ((backup_id1, fingerprints1), (backup_id2, fingerprints2)):
            if not fingerprints and backup_id not in diff.unreadable:
                logger.warning(
                    "No member of %s could be decrypted (wrong password?)", backup_id,
                )
                diff.unreadable.append(backup_id)

        logger.info(
            "Diff %s -> %s: %d added, %d removed, %d modified",
            backup_id1, backup_id2,
            len(diff.added), len(diff.removed), len(diff.modified),
        )
        return diff
