"""NetworkSettings: cache for the singleton network configuration record."""

import logging
from dataclasses import replace
from typing import Any

from .errors import ApiError
from .gateway import Gateway, parse_body
from .types import NetworkConfiguration

logger = logging.getLogger(__name__)

CONFIG_PATH = "/network/config"


def normalize_multicast_groups(groups: list[str] | tuple[str, ...]) -> tuple[str, ...]:
    """Drop blank entries; anything non-blank is passed through untouched."""
    return tuple(g for g in groups if g.strip())


def parse_multicast_groups(text: str) -> tuple[str, ...]:
    """Split a comma separated list into trimmed entries (blanks kept for normalize)."""
    return tuple(entry.strip() for entry in text.split(","))


class NetworkSettings:
    """
    Holds at most one NetworkConfiguration.

    has_saved_config is None before the first load, False when the backend
    has no record, True once a record is loaded or saved. `effective` falls
    back to blank defaults for display without marking them as saved.
    """

    def __init__(self, gateway: Gateway) -> None:
        self._gateway = gateway
        self._config: NetworkConfiguration | None = None
        self._has_saved_config: bool | None = None
        self.last_error: str | None = None
        self.notice: str | None = None

    @property
    def config(self) -> NetworkConfiguration | None:
        return self._config

    @property
    def has_saved_config(self) -> bool | None:
        return self._has_saved_config

    @property
    def effective(self) -> NetworkConfiguration:
        return self._config if self._config is not None else NetworkConfiguration.defaults()

    @staticmethod
    def _parse(data: Any) -> NetworkConfiguration | None:
        raw = data.get("config")
        return NetworkConfiguration.from_dict(raw) if raw is not None else None

    def _apply(self, config: NetworkConfiguration | None) -> NetworkConfiguration | None:
        self._config = config
        self._has_saved_config = config is not None
        return config

    def load(self) -> NetworkConfiguration | None:
        """Fetch the record; None means "not configured" on the backend."""
        self.last_error = None
        try:
            config = parse_body(CONFIG_PATH, self._parse, self._gateway.get(CONFIG_PATH))
        except ApiError as e:
            self.last_error = e.message
            raise
        return self._apply(config)

    def save(self, config: NetworkConfiguration) -> NetworkConfiguration | None:
        """
        Submit config with blank multicast groups removed. The server's echo
        replaces the cache, not the submitted payload.
        """
        self.last_error = None
        self.notice = None
        payload = replace(config, multicast_groups=normalize_multicast_groups(config.multicast_groups))
        try:
            echo = parse_body(CONFIG_PATH, self._parse, self._gateway.post(CONFIG_PATH, payload.to_dict()))
        except ApiError as e:
            self.last_error = e.message
            raise
        saved = self._apply(echo)
        self.notice = "Network configuration saved"
        logger.info("Saved network configuration for %s", payload.interface_name or "<unset>")
        return saved
