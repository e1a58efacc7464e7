"""
Pydantic models for memory files, encrypted blobs, and backup results.

The wire shapes (EncryptedBlob JSON, MembaseMessage, member metadata)
match what existing Membase backups already store, so older backup
sets stay readable.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator


class MemoryFile(BaseModel):
    """A local memory file captured by a scan.

    Attributes:
        path: POSIX path relative to the workspace root.
        content: Raw file bytes, encoding untouched.
        modified_at: Last-modified time (UTC).
        size: Size on disk in bytes.
    """

    path: str
    content: bytes
    modified_at: datetime
    size: int = 0


class EncryptedBlob(BaseModel):
    """AES-256-GCM ciphertext plus everything needed to decrypt it.

    All four fields are base64 strings. On the wire the tag travels
    as ``authTag``.
    """

    ciphertext: str
    iv: str
    auth_tag: str
    salt: str

    def to_json(self) -> str:
        """Serialize to the JSON string stored as message content."""
        return json.dumps({
            "ciphertext": self.ciphertext,
            "iv": self.iv,
            "authTag": self.auth_tag,
            "salt": self.salt,
        })

    @classmethod
    def from_json(cls, raw: str) -> "EncryptedBlob":
        """Parse message content back into a blob.

        Raises:
            ValueError: If the content is not a complete blob.
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("Encrypted blob must be a JSON object")
        return cls(
            ciphertext=data.get("ciphertext", ""),
            iv=data.get("iv", ""),
            auth_tag=data.get("authTag", data.get("auth_tag", "")),
            salt=data.get("salt", ""),
        )


class MemberMetadata(BaseModel):
    """Per-member metadata stored next to the encrypted content.

    Field names are the keys existing backups use on the wire.

    Attributes:
        file: Original relative path.
        timestamp: Original modified time (ISO 8601).
        size: Original size in bytes.
        encrypted: Always true for members written by this package.
        incremental: Whether the member came from an incremental run.
    """

    file: str
    timestamp: Optional[str] = None
    size: int = 0
    encrypted: bool = True
    incremental: Optional[bool] = False


class MembaseMessage(BaseModel):
    """A single message as stored on Membase Hub."""

    id: str
    name: str = "openclaw-agent"
    content: str = ""
    role: str = "assistant"
    metadata: Union[dict[str, Any], str, None] = None
    timestamp: str = ""
    type: str = "ltm"

    @field_validator("metadata", mode="before")
    @classmethod
    def metadata_from_string(cls, v: Any) -> Any:
        """Accept metadata stored as an embedded JSON string."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
            except json.JSONDecodeError:
                return v
            if isinstance(parsed, dict):
                return parsed
        return v

    @property
    def metadata_dict(self) -> dict[str, Any]:
        """Metadata as a dict, empty when absent or unparseable."""
        return self.metadata if isinstance(self.metadata, dict) else {}


class BackupMember(BaseModel):
    """One uploaded file inside a backup set."""

    sequence_id: int
    blob: EncryptedBlob
    metadata: MemberMetadata
    timestamp: str = ""

    @classmethod
    def from_message(cls, message: MembaseMessage, default_seq: int = 0) -> "BackupMember":
        """Rebuild a member from a stored message.

        Args:
            message: Message fetched from the store.
            default_seq: Sequence to use when the id carries none.

        Raises:
            ValueError: If the content or metadata is malformed.
        """
        seq = default_seq
        tail = message.id.rsplit("-", 1)[-1]
        if tail.isdigit():
            seq = int(tail)
        return cls(
            sequence_id=seq,
            blob=EncryptedBlob.from_json(message.content),
            metadata=MemberMetadata(**message.metadata_dict),
            timestamp=message.timestamp,
        )


class BackupResult(BaseModel):
    """Outcome of a backup run.

    ``created`` is False when an incremental run found nothing new;
    ``backup_id`` then names the previous backup, not a new one.
    """

    backup_id: str
    file_count: int = 0
    total_size: int = 0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    incremental: bool = False
    skipped_files: int = 0
    created: bool = True


class RestoreResult(BaseModel):
    """Outcome of a restore run."""

    backup_id: str
    file_count: int = 0
    total_size: int = 0
    timestamp: str = ""
    agent_name: str = ""
    files: list[str] = Field(default_factory=list)


class BackupSummary(BaseModel):
    """Listing view of a remote backup set."""

    id: str
    timestamp: Optional[datetime] = None
    file_count: int = 0
    total_size: int = 0


class LocalStatus(BaseModel):
    """Memory files currently in the workspace."""

    file_count: int = 0
    total_size: int = 0


class RemoteStatus(BaseModel):
    """Backup sets currently on the store."""

    backup_count: int = 0


class StatusReport(BaseModel):
    """Local vs remote overview."""

    local: LocalStatus = Field(default_factory=LocalStatus)
    remote: RemoteStatus = Field(default_factory=RemoteStatus)


class CleanupPlan(BaseModel):
    """Advisory retention report. Nothing in it is ever deleted."""

    total: int = 0
    keep_last: int = 10
    candidates: list[BackupSummary] = Field(default_factory=list)
    supported: bool = False
