"""
Backup Diff — what changed between two encrypted backup sets.

Both sets are decrypted in memory, each member is fingerprinted
(SHA-256), and the two path -> fingerprint maps are compared.
Nothing touches the local workspace.

Members that cannot be decrypted are left out of their set's map
so one corrupted file does not block comparing the rest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .encryption import DecryptionError, decrypt, fingerprint
from .models import BackupMember, MembaseMessage

logger = logging.getLogger("skmembase.diff")


@dataclass
class BackupDiff:
    """Differences between two backup sets.

    Attributes:
        added: Paths only in the second set.
        removed: Paths only in the first set.
        modified: Paths in both sets with different content.
        unreadable: Backup ids none of whose members could be decrypted.
    """

    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    unreadable: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.modified)

    def to_dict(self) -> dict[str, Any]:
        return {
            "added": list(self.added),
            "removed": list(self.removed),
            "modified": list(self.modified),
        }


def fingerprint_members(messages: list[MembaseMessage], password: str) -> dict[str, str]:
    """Decrypt every member and map its original path to a fingerprint.

    Args:
        messages: Messages of one backup set.
        password: Decryption password.

    Returns:
        dict: path -> SHA-256 of the decrypted content.
    """
    fingerprints: dict[str, str] = {}
    for seq, message in enumerate(messages):
        try:
            member = BackupMember.from_message(message, default_seq=seq)
            content = decrypt(member.blob, password)
        except (DecryptionError, ValueError) as exc:
            logger.debug("Skipping member %s: %s", message.id, exc)
            continue
        fingerprints[member.metadata.file] = fingerprint(content)
    return fingerprints


def compare_fingerprints(before: dict[str, str], after: dict[str, str]) -> BackupDiff:
    """Compare two path -> fingerprint maps.

    Args:
        before: Map for the first (older) set.
        after: Map for the second (newer) set.

    Returns:
        BackupDiff with each list sorted.
    """
    added = [path for path in after if path not in before]
    modified = [
        path for path, digest in after.items()
        if path in before and before[path] != digest
    ]
    removed = [path for path in before if path not in after]

    return BackupDiff(
        added=sorted(added),
        removed=sorted(removed),
        modified=sorted(modified),
    )
