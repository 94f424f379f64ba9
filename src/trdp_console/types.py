"""Core data model: identities, configuration documents, network settings, traffic and log records."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class Role(str, Enum):
    """Account roles known to the backend."""

    ADMIN = "admin"
    DEV = "dev"


class ValidationStatus(str, Enum):
    """Server verdicts for a configuration document (never computed locally)."""

    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"


class MessageDirection(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


def _require(raw: Any, key: str, kind: type | tuple[type, ...]) -> Any:
    """Fetch raw[key] and check its type; ValueError on anything unexpected."""
    if not isinstance(raw, dict):
        raise ValueError(f"Expected an object, got {type(raw).__name__}")
    if key not in raw:
        raise ValueError(f"Missing field {key!r}")
    value = raw[key]
    # bool is an int subclass; never accept it where an id or port is expected
    if isinstance(value, bool) and bool not in (kind if isinstance(kind, tuple) else (kind,)):
        raise ValueError(f"Field {key!r} has wrong type bool")
    if not isinstance(value, kind):
        raise ValueError(f"Field {key!r} has wrong type {type(value).__name__}")
    return value


def _optional(raw: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present, non-null value among keys (backend field aliases)."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return default


@dataclass(frozen=True)
class Identity:
    """Authenticated account as reported by the profile endpoint."""

    username: str
    role: str
    id: int | None = None
    created_at: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    @classmethod
    def anonymous_default(cls, username: str) -> "Identity":
        """Minimal identity used when login succeeds but the profile is unavailable."""
        return cls(username=username, role=Role.DEV.value)

    @classmethod
    def from_dict(cls, raw: Any) -> "Identity":
        username = _require(raw, "username", str)
        role = _require(raw, "role", str)
        if not username:
            raise ValueError("Field 'username' is empty")
        ident = raw.get("id")
        if ident is not None and (isinstance(ident, bool) or not isinstance(ident, int)):
            raise ValueError("Field 'id' has wrong type")
        created_at = raw.get("created_at")
        if created_at is not None and not isinstance(created_at, str):
            raise ValueError("Field 'created_at' has wrong type")
        return cls(username=username, role=role, id=ident, created_at=created_at)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ConfigurationDocument:
    """
    A TRDP XML configuration document.

    Summary records (from the list endpoint) carry no xml/user_id; detail
    records (get/create) carry both.
    """

    id: int
    name: str
    validation_status: str
    created_at: str | None = None
    xml: str | None = None
    user_id: int | None = None

    @property
    def is_detail(self) -> bool:
        return self.xml is not None

    @classmethod
    def from_dict(cls, raw: Any) -> "ConfigurationDocument":
        return cls(
            id=_require(raw, "id", int),
            name=_require(raw, "name", str),
            validation_status=str(_optional(raw, "validation_status", default=ValidationStatus.PENDING.value)),
            created_at=raw.get("created_at"),
            xml=raw.get("xml"),
            user_id=raw.get("user_id"),
        )

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        if not self.is_detail:
            out.pop("xml")
            out.pop("user_id")
        return out


DEFAULT_PD_PORT = 17224
DEFAULT_MD_PORT = 17225


@dataclass(frozen=True)
class NetworkConfiguration:
    """Singleton network interface record used by the TRDP engine."""

    interface_name: str
    local_ip: str
    multicast_groups: tuple[str, ...] = field(default_factory=tuple)
    pd_port: int = DEFAULT_PD_PORT
    md_port: int = DEFAULT_MD_PORT

    @classmethod
    def defaults(cls) -> "NetworkConfiguration":
        """Blank form values shown when nothing has been saved yet."""
        return cls(interface_name="", local_ip="")

    @classmethod
    def from_dict(cls, raw: Any) -> "NetworkConfiguration":
        groups = _require(raw, "multicast_groups", list)
        return cls(
            interface_name=_require(raw, "interface_name", str),
            local_ip=_require(raw, "local_ip", str),
            multicast_groups=tuple(str(g) for g in groups),
            pd_port=_require(raw, "pd_port", int),
            md_port=_require(raw, "md_port", int),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "interface_name": self.interface_name,
            "local_ip": self.local_ip,
            "multicast_groups": list(self.multicast_groups),
            "pd_port": self.pd_port,
            "md_port": self.md_port,
        }


@dataclass(frozen=True)
class PdMessage:
    """Process-data telegram; outgoing ones have a replaceable payload."""

    id: int
    name: str
    payload_hex: str
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> "PdMessage":
        return cls(
            id=_require(raw, "id", int),
            name=str(_optional(raw, "name", default="")),
            payload_hex=str(_optional(raw, "payload_hex", default="")),
            updated_at=_optional(raw, "updated_at", "last_update_utc"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MdMessage:
    """Message-data exchange observed through the incoming MD collection."""

    id: int
    subject: str
    payload_hex: str
    direction: str = MessageDirection.INCOMING.value
    timestamp: str | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> "MdMessage":
        return cls(
            id=_require(raw, "id", int),
            subject=str(_optional(raw, "subject", default="")),
            payload_hex=str(_optional(raw, "payload_hex", default="")),
            direction=str(_optional(raw, "direction", default=MessageDirection.INCOMING.value)),
            timestamp=_optional(raw, "timestamp", "timestamp_utc"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TrdpLogEntry:
    """Protocol-level log line (one PD/MD telegram seen or sent)."""

    id: int
    direction: str
    type: str
    msg_id: int = 0
    src_ip: str = ""
    dst_ip: str = ""
    payload_hex: str = ""
    timestamp: str | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> "TrdpLogEntry":
        return cls(
            id=_require(raw, "id", int),
            direction=str(_optional(raw, "direction", default="")),
            type=str(_optional(raw, "type", default="")),
            msg_id=int(_optional(raw, "msg_id", default=0)),
            src_ip=str(_optional(raw, "src_ip", default="")),
            dst_ip=str(_optional(raw, "dst_ip", default="")),
            payload_hex=str(_optional(raw, "payload_hex", default="")),
            timestamp=_optional(raw, "timestamp", "timestamp_utc"),
        )

    @property
    def payload_preview(self) -> str:
        return preview_payload(self.payload_hex)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AppLogEntry:
    """Application-level log line written by the backend."""

    id: int
    level: str
    message: str
    timestamp: str | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> "AppLogEntry":
        return cls(
            id=_require(raw, "id", int),
            level=str(_optional(raw, "level", default="")),
            message=str(_optional(raw, "message", default="")),
            timestamp=_optional(raw, "timestamp", "timestamp_utc"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def preview_payload(payload_hex: str, limit: int = 32) -> str:
    """Shorten a hex payload for tabular display."""
    if not payload_hex:
        return "—"
    if len(payload_hex) <= limit:
        return payload_hex
    return f"{payload_hex[:limit]}…"
