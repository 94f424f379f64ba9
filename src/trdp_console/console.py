"""Console: wires one gateway and session into the configuration, network, traffic and log views."""

import json
import logging
from pathlib import Path
from typing import Any

from .configs import ConfigRegistry
from .gateway import Gateway
from .logs import LogViewer
from .network import NetworkSettings
from .session import SessionStore
from .snapshot import COOKIE_KEY, FileSnapshotStore, MemorySnapshotStore, SnapshotStore
from .traffic import TrafficMonitor

logger = logging.getLogger(__name__)


class Console:
    """
    Composition root. The peers share the gateway (and therefore the session
    cookie) but never call each other.
    """

    def __init__(self, gateway: Gateway, snapshots: SnapshotStore) -> None:
        self.gateway = gateway
        self.snapshots = snapshots
        self.session = SessionStore(gateway, snapshots)
        self.configs = ConfigRegistry(gateway)
        self.network = NetworkSettings(gateway)
        self.traffic = TrafficMonitor(gateway)
        self.logs = LogViewer(gateway)
        self._restore_cookies()

    @classmethod
    def connect(
        cls,
        base_url: str,
        *,
        snapshot_path: str | Path | None = None,
        timeout: float = 10.0,
    ) -> "Console":
        """Build the default wiring; without snapshot_path nothing outlives the process."""
        snapshots: SnapshotStore
        if snapshot_path is not None:
            snapshots = FileSnapshotStore(snapshot_path)
        else:
            snapshots = MemorySnapshotStore()
        return cls(Gateway(base_url, timeout=timeout), snapshots)

    def _restore_cookies(self) -> None:
        raw = self.snapshots.get(COOKIE_KEY)
        if raw is None:
            return
        try:
            cookies = json.loads(raw)
        except ValueError:
            cookies = None
        if not isinstance(cookies, dict):
            logger.warning("Discarding malformed cookie snapshot")
            self.snapshots.remove(COOKIE_KEY)
            return
        self.gateway.import_cookies({str(k): str(v) for k, v in cookies.items()})

    def save_cookies(self) -> None:
        """Persist the session cookie so another process can reuse the login."""
        cookies = self.gateway.export_cookies()
        if cookies:
            self.snapshots.set(COOKIE_KEY, json.dumps(cookies))
        else:
            self.snapshots.remove(COOKIE_KEY)

    def close(self) -> None:
        self.gateway.close()

    def __enter__(self) -> "Console":
        return self

    def __exit__(self, *args: Any) -> None:
        # cookies may have been rotated by any request made inside the block
        try:
            self.save_cookies()
        except OSError as e:
            logger.warning("Unable to persist session cookie: %s", e)
        finally:
            self.close()
