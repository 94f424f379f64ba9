"""Key-value snapshot ports for client-side caches: in-memory and JSON-file backed."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

from .errors import SnapshotError
from .types import Identity

logger = logging.getLogger(__name__)

IDENTITY_KEY = "trdp-user"
COOKIE_KEY = "session-cookie"


class SnapshotStore(Protocol):
    """Minimal durable string map (get/set/remove)."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemorySnapshotStore:
    """Process-local store; lives as long as the object."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class FileSnapshotStore:
    """
    Store backed by a single JSON object file (key -> string), readable only by
    the owner. An unreadable or non-object file is treated as empty and
    overwritten on the next write.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable snapshot file %s: %s", self._path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring snapshot file %s: not a JSON object", self._path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _dump(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        # owner-only before the first byte is written; chmod covers files created earlier
        fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            os.chmod(self._path, 0o600)
            f.write(json.dumps(data, indent=2))

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)


def encode_identity_snapshot(identity: Identity) -> str:
    return json.dumps(identity.to_dict())


def decode_identity_snapshot(raw: str) -> Identity:
    """Parse a persisted identity; SnapshotError if it is not a well-formed identity."""
    try:
        data: Any = json.loads(raw)
        return Identity.from_dict(data)
    except ValueError as e:
        raise SnapshotError(IDENTITY_KEY, f"Malformed identity snapshot: {e}") from e
