"""
Message stores -- where encrypted memories live.

A store holds messages addressed by owner, bucket (conversation) and
filename. The backup engine only needs the MessageStore contract;
the concrete store is picked from the configured endpoint.

Membase: Membase Hub REST API over HTTPS (the default).
Local: Plain filesystem directory. For USB drives, NAS, and tests.

Stores never retry and never delete. Membase Hub has no delete API.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Union

import requests
from pydantic import ValidationError

from .models import MembaseMessage

logger = logging.getLogger("skmembase.store")

DEFAULT_ENDPOINT = "https://testnet.hub.membase.io"
DEFAULT_TIMEOUT = 30


class MembaseError(RuntimeError):
    """Raised when the store answers with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MessageNotFoundError(MembaseError):
    """Raised when a single message does not exist."""


def _parse_message(raw: Any) -> Optional[MembaseMessage]:
    """Parse one stored message, returning None if it is malformed."""
    try:
        if isinstance(raw, dict):
            return MembaseMessage.model_validate(raw)
        return MembaseMessage.model_validate_json(raw)
    except (ValidationError, ValueError, TypeError):
        logger.warning("Dropping malformed message: %.80r", raw)
        return None


class MessageStore(ABC):
    """Abstract owner/bucket/message store."""

    @abstractmethod
    def upload_message(
        self,
        owner: str,
        filename: str,
        message: MembaseMessage,
        bucket: Optional[str] = None,
    ) -> None:
        """Store a message.

        Args:
            owner: Namespace owner.
            filename: Object id of the message.
            message: The message to store.
            bucket: Conversation to append to. Defaults to the owner.
        """

    @abstractmethod
    def download_message(self, owner: str, filename: str) -> MembaseMessage:
        """Fetch a single message by its object id."""

    @abstractmethod
    def list_conversations(self, owner: str) -> list[str]:
        """List all conversation (bucket) ids for an owner."""

    @abstractmethod
    def get_conversation(self, owner: str, conversation_id: str) -> list[MembaseMessage]:
        """Return every message in a conversation, in storage order.

        Malformed entries are dropped with a warning.
        """

    @abstractmethod
    def ping(self) -> bool:
        """Check if the store is reachable."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable store name."""


class MembaseClient(MessageStore):
    """Membase Hub REST client.

    Args:
        endpoint: Hub base URL.
        timeout: Per-request timeout in seconds.
        session: Optional preconfigured requests session.
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    @property
    def name(self) -> str:
        return "membase"

    def _post(self, path: str, **kwargs: Any) -> requests.Response:
        return self._session.post(
            f"{self.endpoint}{path}", timeout=self.timeout, **kwargs,
        )

    @staticmethod
    def _raise_for_status(resp: requests.Response, action: str) -> None:
        if resp.status_code >= 400:
            raise MembaseError(
                f"{action} failed: {resp.status_code} {resp.text or resp.reason}",
                status_code=resp.status_code,
            )

    def upload_message(
        self,
        owner: str,
        filename: str,
        message: MembaseMessage,
        bucket: Optional[str] = None,
    ) -> None:
        payload = {
            "owner": owner,
            "bucket": bucket or owner,
            "id": filename,
            "message": message.model_dump_json(),
        }
        resp = self._post("/api/upload", json=payload)
        self._raise_for_status(resp, "Upload")
        logger.debug("Uploaded %s to %s/%s", filename, owner, bucket or owner)

    def download_message(self, owner: str, filename: str) -> MembaseMessage:
        resp = self._post("/api/download", data={"owner": owner, "id": filename})
        if resp.status_code == 404:
            raise MessageNotFoundError(f"Message not found: {filename}", status_code=404)
        self._raise_for_status(resp, "Download")

        message = _parse_message(resp.text)
        if message is None:
            raise MembaseError(f"Malformed message: {filename}")
        return message

    def list_conversations(self, owner: str) -> list[str]:
        resp = self._post("/api/conversation", data={"owner": owner})
        self._raise_for_status(resp, "List conversations")

        result = resp.json()
        return [str(c) for c in result] if isinstance(result, list) else []

    def get_conversation(self, owner: str, conversation_id: str) -> list[MembaseMessage]:
        resp = self._post(
            "/api/conversation", data={"owner": owner, "id": conversation_id},
        )
        if resp.status_code == 404:
            logger.debug("Conversation %s not found", conversation_id)
            return []
        self._raise_for_status(resp, "Get conversation")

        raw_messages = resp.json()
        if not isinstance(raw_messages, list):
            return []

        messages = [_parse_message(raw) for raw in raw_messages]
        return [m for m in messages if m is not None]

    def ping(self) -> bool:
        try:
            resp = self._session.head(self.endpoint, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.debug("Ping %s failed: %s", self.endpoint, exc)
            return False
        # 404 on the bare endpoint still means the hub is up
        return resp.ok or resp.status_code == 404


class LocalStore(MessageStore):
    """Filesystem store for USB, NAS, or mounted drives.

    Layout:
        <root>/<owner>/_index.json          # bucket -> filenames, upload order
        <root>/<owner>/<bucket>/<id>.json   # one message per file
    """

    INDEX_FILE = "_index.json"

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).expanduser()
        self.root.mkdir(parents=True, exist_ok=True)

    @property
    def name(self) -> str:
        return "local"

    @staticmethod
    def _safe(part: str) -> str:
        if not part or part.startswith(".") or "/" in part or "\\" in part:
            raise ValueError(f"Invalid store name: {part!r}")
        return part

    def _owner_dir(self, owner: str) -> Path:
        return self.root / self._safe(owner)

    def _load_index(self, owner: str) -> dict[str, list[str]]:
        index_file = self._owner_dir(owner) / self.INDEX_FILE
        if not index_file.exists():
            return {}
        try:
            data = json.loads(index_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Unreadable index for %s: %s", owner, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _save_index(self, owner: str, index: dict[str, list[str]]) -> None:
        index_file = self._owner_dir(owner) / self.INDEX_FILE
        index_file.write_text(json.dumps(index, indent=2), encoding="utf-8")

    def upload_message(
        self,
        owner: str,
        filename: str,
        message: MembaseMessage,
        bucket: Optional[str] = None,
    ) -> None:
        bucket = bucket or owner
        bucket_dir = self._owner_dir(owner) / self._safe(bucket)
        bucket_dir.mkdir(parents=True, exist_ok=True)

        (bucket_dir / f"{self._safe(filename)}.json").write_text(
            message.model_dump_json(), encoding="utf-8",
        )

        index = self._load_index(owner)
        entries = index.setdefault(bucket, [])
        if filename not in entries:
            entries.append(filename)
        self._save_index(owner, index)
        logger.debug("Stored %s in %s", filename, bucket_dir)

    def download_message(self, owner: str, filename: str) -> MembaseMessage:
        for bucket, entries in self._load_index(owner).items():
            if filename in entries:
                path = self._owner_dir(owner) / bucket / f"{filename}.json"
                message = _parse_message(path.read_text(encoding="utf-8"))
                if message is None:
                    raise MembaseError(f"Malformed message: {filename}")
                return message
        raise MessageNotFoundError(f"Message not found: {filename}", status_code=404)

    def list_conversations(self, owner: str) -> list[str]:
        return sorted(self._load_index(owner))

    def get_conversation(self, owner: str, conversation_id: str) -> list[MembaseMessage]:
        entries = self._load_index(owner).get(conversation_id, [])
        bucket_dir = self._owner_dir(owner) / self._safe(conversation_id)

        messages = []
        for filename in entries:
            path = bucket_dir / f"{filename}.json"
            try:
                raw = path.read_text(encoding="utf-8")
            except OSError as exc:
                logger.warning("Cannot read %s: %s", path, exc)
                continue
            message = _parse_message(raw)
            if message is not None:
                messages.append(message)
        return messages

    def ping(self) -> bool:
        return self.root.is_dir()


def create_store(
    endpoint: str = DEFAULT_ENDPOINT, timeout: float = DEFAULT_TIMEOUT,
) -> MessageStore:
    """Factory: pick a store for the configured endpoint.

    Args:
        endpoint: ``file:///path`` for a LocalStore, otherwise a hub URL.
        timeout: HTTP timeout for the Membase client.

    Returns:
        Instantiated MessageStore.
    """
    if endpoint.startswith("file://"):
        return LocalStore(Path(endpoint[len("file://"):]))
    return MembaseClient(endpoint, timeout=timeout)
