"""LogViewer: filtered, read-only access to protocol and application logs."""

import logging
from typing import Any, Callable

from .errors import ApiError
from .gateway import Gateway, parse_body
from .types import AppLogEntry, TrdpLogEntry

logger = logging.getLogger(__name__)

ALL = "ALL"
TRDP_TYPES = frozenset({ALL, "PD", "MD"})
TRDP_DIRECTIONS = frozenset({ALL, "IN", "OUT"})
APP_LEVELS = frozenset({ALL, "INFO", "WARN", "ERROR"})
DEFAULT_LIMIT = 100


def _check_filter(name: str, value: str, allowed: frozenset[str]) -> str:
    v = value.strip().upper()
    if v not in allowed:
        raise ValueError(f"Invalid {name} filter {value!r}; expected one of {', '.join(sorted(allowed))}")
    return v


def build_trdp_params(type_filter: str = ALL, direction_filter: str = ALL, limit: int = DEFAULT_LIMIT) -> dict[str, Any]:
    """Query parameters for /logs/trdp; ALL filters are omitted."""
    params: dict[str, Any] = {"limit": limit}
    t = _check_filter("type", type_filter, TRDP_TYPES)
    d = _check_filter("direction", direction_filter, TRDP_DIRECTIONS)
    if t != ALL:
        params["type"] = t
    if d != ALL:
        params["direction"] = d
    return params


def build_app_params(level_filter: str = ALL, limit: int = DEFAULT_LIMIT) -> dict[str, Any]:
    params: dict[str, Any] = {"limit": limit}
    lv = _check_filter("level", level_filter, APP_LEVELS)
    if lv != ALL:
        params["level"] = lv
    return params


def _entries(parse: Callable[[Any], Any]) -> Callable[[Any], tuple[Any, ...]]:
    def parse_all(data: Any) -> tuple[Any, ...]:
        return tuple(parse(entry) for entry in data or [])

    return parse_all


class LogViewer:
    """Caches the last fetched page of each log; entries are never modified locally."""

    def __init__(self, gateway: Gateway) -> None:
        self._gateway = gateway
        self._trdp: tuple[TrdpLogEntry, ...] = ()
        self._app: tuple[AppLogEntry, ...] = ()
        self.last_error: str | None = None

    @property
    def trdp(self) -> tuple[TrdpLogEntry, ...]:
        return self._trdp

    @property
    def app(self) -> tuple[AppLogEntry, ...]:
        return self._app

    def trdp_logs(
        self,
        type_filter: str = ALL,
        direction_filter: str = ALL,
        limit: int = DEFAULT_LIMIT,
    ) -> tuple[TrdpLogEntry, ...]:
        params = build_trdp_params(type_filter, direction_filter, limit)
        self.last_error = None
        try:
            data = self._gateway.get("/logs/trdp", params=params)
            self._trdp = parse_body("/logs/trdp", _entries(TrdpLogEntry.from_dict), data)
        except ApiError as e:
            self.last_error = e.message
            raise
        logger.debug("Fetched %d TRDP log entries", len(self._trdp))
        return self._trdp

    def app_logs(self, level_filter: str = ALL, limit: int = DEFAULT_LIMIT) -> tuple[AppLogEntry, ...]:
        params = build_app_params(level_filter, limit)
        self.last_error = None
        try:
            data = self._gateway.get("/logs/app", params=params)
            self._app = parse_body("/logs/app", _entries(AppLogEntry.from_dict), data)
        except ApiError as e:
            self.last_error = e.message
            raise
        logger.debug("Fetched %d application log entries", len(self._app))
        return self._app
