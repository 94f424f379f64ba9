"""trdp-console: session and state synchronization for a TRDP operator console backend."""

__version__ = "0.1.0"

from .configs import ConfigRegistry
from .console import Console
from .errors import ApiError, PermissionDeniedError, SnapshotError, TrdpConsoleError
from .gateway import Gateway
from .logs import LogViewer
from .network import NetworkSettings
from .session import SessionStore
from .snapshot import FileSnapshotStore, MemorySnapshotStore, SnapshotStore
from .traffic import TrafficMonitor, TrafficSnapshot
from .types import (
    AppLogEntry,
    ConfigurationDocument,
    Identity,
    MdMessage,
    MessageDirection,
    NetworkConfiguration,
    PdMessage,
    Role,
    TrdpLogEntry,
    ValidationStatus,
)

__all__ = [
    "__version__",
    "ApiError",
    "AppLogEntry",
    "ConfigRegistry",
    "ConfigurationDocument",
    "Console",
    "FileSnapshotStore",
    "Gateway",
    "Identity",
    "LogViewer",
    "MdMessage",
    "MemorySnapshotStore",
    "MessageDirection",
    "NetworkConfiguration",
    "NetworkSettings",
    "PdMessage",
    "PermissionDeniedError",
    "Role",
    "SessionStore",
    "SnapshotError",
    "SnapshotStore",
    "TrafficMonitor",
    "TrafficSnapshot",
    "TrdpConsoleError",
    "TrdpLogEntry",
    "ValidationStatus",
]
