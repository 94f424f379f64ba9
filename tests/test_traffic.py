"""Tests for TrafficMonitor: all-or-nothing refresh, mutate-then-refresh, stale refresh handling."""

import threading
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from trdp_console import ApiError, MdMessage, PdMessage, TrafficMonitor
from trdp_console.traffic import TrafficSnapshot


def pd(msg_id: int, name: str, payload: str = "00") -> dict:
    return {"id": msg_id, "name": name, "payload_hex": payload, "updated_at": "2024-05-01T12:00:00Z"}


def md(msg_id: int, subject: str) -> dict:
    return {"id": msg_id, "subject": subject, "payload_hex": "CAFE", "direction": "incoming", "timestamp": "2024-05-01T12:00:01Z"}


def routed_gateway(routes: dict[str, Any]) -> MagicMock:
    """Gateway whose get() answers per path; Exception values are raised."""
    gw = MagicMock()

    def get(path: str, params: Any = None) -> Any:
        value = routes[path]
        if isinstance(value, Exception):
            raise value
        return value

    gw.get.side_effect = get
    return gw


ROUTES = {
    "/pd/outgoing": [pd(1, "door_status"), pd(2, "speed")],
    "/pd/incoming": [pd(10, "brake_state")],
    "/md/incoming": [md(100, "diag")],
}


def test_refresh_fetches_all_three() -> None:
    gw = routed_gateway(ROUTES)
    monitor = TrafficMonitor(gw)
    snap = monitor.refresh()
    assert [m.id for m in snap.pd_outgoing] == [1, 2]
    assert monitor.pd_incoming == (PdMessage.from_dict(pd(10, "brake_state")),)
    assert monitor.md_incoming == (MdMessage.from_dict(md(100, "diag")),)
    assert sorted(c.args[0] for c in gw.get.call_args_list) == ["/md/incoming", "/pd/incoming", "/pd/outgoing"]


def test_refresh_failure_discards_partial_results() -> None:
    monitor = TrafficMonitor(routed_gateway(ROUTES))
    monitor.refresh()
    before = monitor.snapshot

    failing = {
        "/pd/outgoing": [pd(1, "door_status", "FF")],
        "/pd/incoming": [pd(11, "new_incoming")],
        "/md/incoming": ApiError("md service down", status=503),
    }
    monitor._gateway = routed_gateway(failing)
    with pytest.raises(ApiError) as exc_info:
        monitor.refresh()
    assert exc_info.value.status == 503
    assert monitor.last_error == "md service down"
    assert monitor.snapshot is before
    assert monitor.pd_outgoing[0].payload_hex == "00"


def test_refresh_failure_on_first_load_leaves_empty() -> None:
    routes = {**ROUTES, "/md/incoming": ApiError("Request failed", status=500)}
    monitor = TrafficMonitor(routed_gateway(routes))
    with pytest.raises(ApiError):
        monitor.refresh()
    assert monitor.pd_outgoing == ()
    assert monitor.pd_incoming == ()
    assert monitor.md_incoming == ()


def test_malformed_record_is_reported_as_api_error() -> None:
    routes = {**ROUTES, "/pd/incoming": [{"name": "no id"}]}
    monitor = TrafficMonitor(routed_gateway(routes))
    with pytest.raises(ApiError, match="Malformed response from /pd/incoming"):
        monitor.refresh()


def test_stale_refresh_does_not_overwrite_newer() -> None:
    calls = {"pd_outgoing": 0}
    lock = threading.Lock()
    monitor = TrafficMonitor(MagicMock())

    def get(path: str, params: Any = None) -> Any:
        if path == "/pd/outgoing":
            with lock:
                calls["pd_outgoing"] += 1
                first = calls["pd_outgoing"] == 1
            if first:
                # a second refresh starts and completes while this one is in flight
                monitor.refresh()
                return [pd(1, "old")]
            return [pd(1, "new")]
        return ROUTES[path]

    monitor._gateway.get.side_effect = get
    result = monitor.refresh()
    assert monitor.pd_outgoing[0].name == "new"
    assert result.pd_outgoing[0].name == "new"


class TestMutations:
    """update_payload and send_md: refresh exactly once on success, never on failure."""

    def test_update_payload_success_refreshes_once(self) -> None:
        gw = MagicMock()
        monitor = TrafficMonitor(gw)
        with patch.object(monitor, "refresh") as refresh:
            monitor.update_payload(2, "zz-not-hex")
        gw.post.assert_called_once_with("/pd/outgoing/2/payload", {"payload_hex": "zz-not-hex"})
        refresh.assert_called_once_with()
        assert monitor.notice == "Payload updated"

    def test_update_payload_failure_never_refreshes(self) -> None:
        gw = MagicMock()
        gw.post.side_effect = ApiError("message not found", status=404)
        monitor = TrafficMonitor(gw)
        with patch.object(monitor, "refresh") as refresh:
            with pytest.raises(ApiError):
                monitor.update_payload(99, "00")
        refresh.assert_not_called()
        assert monitor.last_error == "message not found"
        assert monitor.notice is None

    def test_update_payload_end_to_end(self) -> None:
        gw = routed_gateway(ROUTES)
        monitor = TrafficMonitor(gw)
        snap = monitor.update_payload(1, "0A0B")
        assert gw.get.call_count == 3
        assert snap is monitor.snapshot

    def test_send_md_success_clears_drafts_and_refreshes_once(self) -> None:
        gw = MagicMock()
        monitor = TrafficMonitor(gw)
        monitor.md_subject = "ping"
        monitor.md_payload_hex = "0102"
        with patch.object(monitor, "refresh") as refresh:
            monitor.send_md()
        gw.post.assert_called_once_with("/md/send", {"subject": "ping", "payload_hex": "0102"})
        refresh.assert_called_once_with()
        assert monitor.md_subject == ""
        assert monitor.md_payload_hex == ""
        assert monitor.notice == "MD message sent"

    def test_send_md_explicit_arguments(self) -> None:
        gw = MagicMock()
        monitor = TrafficMonitor(gw)
        with patch.object(monitor, "refresh"):
            monitor.send_md("status", "FF")
        gw.post.assert_called_once_with("/md/send", {"subject": "status", "payload_hex": "FF"})

    def test_send_md_failure_keeps_drafts_and_never_refreshes(self) -> None:
        gw = MagicMock()
        gw.post.side_effect = ApiError("engine not running", status=409)
        monitor = TrafficMonitor(gw)
        monitor.md_subject = "ping"
        monitor.md_payload_hex = "0102"
        with patch.object(monitor, "refresh") as refresh:
            with pytest.raises(ApiError):
                monitor.send_md()
        refresh.assert_not_called()
        assert monitor.md_subject == "ping"
        assert monitor.md_payload_hex == "0102"

    def test_send_md_keeps_success_when_refresh_fails(self) -> None:
        routes = {**ROUTES, "/md/incoming": ApiError("pd service busy", status=503)}
        gw = routed_gateway(routes)
        gw.post.return_value = {"status": "sent"}
        monitor = TrafficMonitor(gw)
        monitor.md_subject = "ping"
        monitor.md_payload_hex = "01"

        snap = monitor.send_md()

        gw.post.assert_called_once_with("/md/send", {"subject": "ping", "payload_hex": "01"})
        assert snap == monitor.snapshot == TrafficSnapshot()
        assert monitor.notice == "MD message sent"
        assert monitor.last_error == "pd service busy"
        assert monitor.md_subject == ""
        assert monitor.md_payload_hex == ""

    def test_update_payload_keeps_previous_snapshot_when_refresh_fails(self) -> None:
        gw = routed_gateway(ROUTES)
        monitor = TrafficMonitor(gw)
        before = monitor.refresh()
        monitor._gateway = routed_gateway({**ROUTES, "/pd/outgoing": ApiError("Connection error: timed out")})

        snap = monitor.update_payload(1, "FF")

        assert snap is before
        assert monitor.notice == "Payload updated"
        assert monitor.last_error == "Connection error: timed out"
