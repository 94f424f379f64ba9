"""TrafficMonitor: outgoing/incoming PD and incoming MD collections with mutate-then-refresh operations."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable

from .errors import ApiError
from .gateway import Gateway, parse_body
from .types import MdMessage, PdMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrafficSnapshot:
    """The three collections from one completed refresh, replaced together."""

    pd_outgoing: tuple[PdMessage, ...] = ()
    pd_incoming: tuple[PdMessage, ...] = ()
    md_incoming: tuple[MdMessage, ...] = ()


_SOURCES: tuple[tuple[str, str, Callable[[Any], Any]], ...] = (
    ("pd_outgoing", "/pd/outgoing", PdMessage.from_dict),
    ("pd_incoming", "/pd/incoming", PdMessage.from_dict),
    ("md_incoming", "/md/incoming", MdMessage.from_dict),
)


class TrafficMonitor:
    """
    Live view of PD/MD traffic.

    refresh() fetches the three collections concurrently and applies them only
    if all succeed. Each refresh is numbered; a refresh that completes after a
    newer one has been applied is discarded.
    """

    def __init__(self, gateway: Gateway) -> None:
        self._gateway = gateway
        self._lock = threading.Lock()
        self._snapshot = TrafficSnapshot()
        self._requested = 0
        self._applied = 0
        self.md_subject = ""
        self.md_payload_hex = ""
        self.last_error: str | None = None
        self.notice: str | None = None

    @property
    def snapshot(self) -> TrafficSnapshot:
        return self._snapshot

    @property
    def pd_outgoing(self) -> tuple[PdMessage, ...]:
        return self._snapshot.pd_outgoing

    @property
    def pd_incoming(self) -> tuple[PdMessage, ...]:
        return self._snapshot.pd_incoming

    @property
    def md_incoming(self) -> tuple[MdMessage, ...]:
        return self._snapshot.md_incoming

    def _fetch(self, path: str, parse: Callable[[Any], Any]) -> tuple[Any, ...]:
        data = self._gateway.get(path)
        if not isinstance(data, list):
            raise ApiError(f"Unexpected response for {path}", path=path)
        return parse_body(path, lambda items: tuple(parse(item) for item in items), data)

    def refresh(self) -> TrafficSnapshot:
        """Fetch all three collections; any failure raises one ApiError and keeps the old ones."""
        with self._lock:
            self._requested += 1
            seq = self._requested
        self.last_error = None

        with ThreadPoolExecutor(max_workers=len(_SOURCES), thread_name_prefix="trdp-refresh") as pool:
            futures = {name: pool.submit(self._fetch, path, parse) for name, path, parse in _SOURCES}
            try:
                results = {name: future.result() for name, future in futures.items()}
            except ApiError as e:
                self.last_error = e.message
                logger.debug("Traffic refresh #%d failed: %s", seq, e)
                raise

        snapshot = TrafficSnapshot(**results)
        with self._lock:
            if seq < self._applied:
                logger.debug("Discarding stale traffic refresh #%d (applied #%d)", seq, self._applied)
                return self._snapshot
            self._applied = seq
            self._snapshot = snapshot
        return snapshot

    def _refresh_after(self, action: str) -> TrafficSnapshot:
        # the mutation is already committed server-side; a failed refresh only leaves the view stale
        try:
            return self.refresh()
        except ApiError as e:
            logger.warning("Refresh after %s failed: %s", action, e)
            return self._snapshot

    def update_payload(self, message_id: int, payload_hex: str) -> TrafficSnapshot:
        """
        Replace an outgoing PD payload (hex passed through as-is), then refresh.
        A failed refresh is left in last_error and the previous snapshot returned.
        """
        self.last_error = None
        self.notice = None
        try:
            self._gateway.post(f"/pd/outgoing/{message_id}/payload", {"payload_hex": payload_hex})
        except ApiError as e:
            self.last_error = e.message
            raise
        self.notice = "Payload updated"
        logger.info("Updated payload of PD message %s", message_id)
        return self._refresh_after("payload update")

    def send_md(self, subject: str | None = None, payload_hex: str | None = None) -> TrafficSnapshot:
        """
        Send an MD message; arguments default to the draft fields. On success
        the drafts are cleared and the collections refreshed.
        """
        subject = self.md_subject if subject is None else subject
        payload_hex = self.md_payload_hex if payload_hex is None else payload_hex
        self.last_error = None
        self.notice = None
        try:
            self._gateway.post("/md/send", {"subject": subject, "payload_hex": payload_hex})
        except ApiError as e:
            self.last_error = e.message
            raise
        self.md_subject = ""
        self.md_payload_hex = ""
        self.notice = "MD message sent"
        logger.info("Sent MD message %r", subject)
        return self._refresh_after("MD send")
