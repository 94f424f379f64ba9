"""Tests for SessionStore: snapshot adoption, profile fallback, login/logout, admin gating."""

import json
from unittest.mock import MagicMock

import pytest

from trdp_console import ApiError, Identity, MemorySnapshotStore, PermissionDeniedError, SessionStore
from trdp_console.snapshot import IDENTITY_KEY

ALICE = {"username": "alice", "role": "dev", "id": 2, "created_at": "2024-01-01 10:00:00"}
ADMIN = {"username": "admin", "role": "admin", "id": 1, "created_at": "2024-01-01 09:00:00"}


@pytest.fixture
def gateway() -> MagicMock:
    return MagicMock()


@pytest.fixture
def snapshots() -> MemorySnapshotStore:
    return MemorySnapshotStore()


def test_initialize_adopts_valid_snapshot_without_request(gateway: MagicMock, snapshots: MemorySnapshotStore) -> None:
    snapshots.set(IDENTITY_KEY, json.dumps(ALICE))
    store = SessionStore(gateway, snapshots)
    identity = store.initialize()
    assert identity == Identity.from_dict(ALICE)
    gateway.get.assert_not_called()


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "",
        "null",
        "[]",
        '"alice"',
        '{"role": "dev"}',
        '{"username": 5, "role": "dev"}',
        '{"username": "alice"}',
        '{"username": "alice", "role": "dev", "id": "two"}',
    ],
)
def test_malformed_snapshot_is_evicted_then_profile_fetched(
    raw: str, gateway: MagicMock, snapshots: MemorySnapshotStore
) -> None:
    snapshots.set(IDENTITY_KEY, raw)
    gateway.get.return_value = {"user": ALICE}
    store = SessionStore(gateway, snapshots)
    identity = store.initialize()
    assert identity == Identity.from_dict(ALICE)
    gateway.get.assert_called_once_with("/account/profile")
    # replaced by the fresh profile
    assert json.loads(snapshots.get(IDENTITY_KEY)) == ALICE


def test_malformed_snapshot_and_failed_fetch_leaves_anonymous(gateway: MagicMock, snapshots: MemorySnapshotStore) -> None:
    snapshots.set(IDENTITY_KEY, "{broken")
    gateway.get.side_effect = ApiError("unauthorized", status=401)
    store = SessionStore(gateway, snapshots)
    assert store.initialize() is None
    assert IDENTITY_KEY not in snapshots
    assert not store.is_authenticated


def test_initialize_without_snapshot_fetches_profile(gateway: MagicMock, snapshots: MemorySnapshotStore) -> None:
    gateway.get.return_value = {"user": ADMIN}
    store = SessionStore(gateway, snapshots)
    assert store.initialize() == Identity.from_dict(ADMIN)
    assert store.is_admin
    assert json.loads(snapshots.get(IDENTITY_KEY)) == ADMIN


def test_initialize_runs_once(gateway: MagicMock, snapshots: MemorySnapshotStore) -> None:
    gateway.get.return_value = {"user": ALICE}
    store = SessionStore(gateway, snapshots)
    store.initialize()
    store.initialize()
    assert gateway.get.call_count == 1
    assert store.initialized


def test_profile_falls_back_to_me_alias(gateway: MagicMock, snapshots: MemorySnapshotStore) -> None:
    gateway.get.side_effect = [ApiError("not found", status=404), {"user": ALICE}]
    store = SessionStore(gateway, snapshots)
    assert store.fetch_profile() == Identity.from_dict(ALICE)
    assert [c.args[0] for c in gateway.get.call_args_list] == ["/account/profile", "/account/me"]


def test_profile_without_user_is_none(gateway: MagicMock, snapshots: MemorySnapshotStore) -> None:
    gateway.get.return_value = {}
    assert SessionStore(gateway, snapshots).fetch_profile() is None


def test_login_adopts_fetched_profile(gateway: MagicMock, snapshots: MemorySnapshotStore) -> None:
    gateway.post.return_value = {"status": "logged_in"}
    gateway.get.return_value = {"user": ALICE}
    store = SessionStore(gateway, snapshots)
    identity = store.login("alice", "x")
    assert identity == Identity.from_dict(ALICE)
    gateway.post.assert_called_once_with("/auth/login", {"username": "alice", "password": "x"})
    assert store.identity == identity


def test_login_synthesizes_identity_when_profile_missing(gateway: MagicMock, snapshots: MemorySnapshotStore) -> None:
    gateway.post.return_value = {"status": "logged_in"}
    gateway.get.side_effect = ApiError("Request failed", status=500)
    store = SessionStore(gateway, snapshots)
    identity = store.login("alice", "x")
    assert identity == Identity(username="alice", role="dev", id=None, created_at=None)
    assert not store.is_admin
    assert json.loads(snapshots.get(IDENTITY_KEY))["username"] == "alice"


def test_login_failure_propagates_and_keeps_identity(gateway: MagicMock, snapshots: MemorySnapshotStore) -> None:
    snapshots.set(IDENTITY_KEY, json.dumps(ADMIN))
    store = SessionStore(gateway, snapshots)
    store.initialize()
    gateway.post.side_effect = ApiError("invalid credentials", status=401)
    with pytest.raises(ApiError, match="invalid credentials"):
        store.login("mallory", "guess")
    assert store.identity == Identity.from_dict(ADMIN)
    gateway.get.assert_not_called()


def test_logout_clears_identity_and_snapshot(gateway: MagicMock, snapshots: MemorySnapshotStore) -> None:
    snapshots.set(IDENTITY_KEY, json.dumps(ALICE))
    store = SessionStore(gateway, snapshots)
    store.initialize()
    store.logout()
    gateway.post.assert_called_once_with("/auth/logout")
    assert store.identity is None
    assert IDENTITY_KEY not in snapshots


def test_logout_clears_identity_even_when_server_fails(gateway: MagicMock, snapshots: MemorySnapshotStore) -> None:
    snapshots.set(IDENTITY_KEY, json.dumps(ALICE))
    store = SessionStore(gateway, snapshots)
    store.initialize()
    gateway.post.side_effect = ApiError("Connection error: refused")
    with pytest.raises(ApiError):
        store.logout()
    assert store.identity is None
    assert IDENTITY_KEY not in snapshots


class TestAdminGate:
    """Authorization predicate for elevated operations."""

    def test_require_login_anonymous(self, gateway: MagicMock, snapshots: MemorySnapshotStore) -> None:
        gateway.get.side_effect = ApiError("unauthorized", status=401)
        store = SessionStore(gateway, snapshots)
        store.initialize()
        with pytest.raises(PermissionDeniedError, match="Login required for traffic") as exc_info:
            store.require_login("traffic")
        assert exc_info.value.action == "traffic"

    def test_require_login_accepts_any_role(self, gateway: MagicMock, snapshots: MemorySnapshotStore) -> None:
        snapshots.set(IDENTITY_KEY, json.dumps(ALICE))
        store = SessionStore(gateway, snapshots)
        store.initialize()
        assert store.require_login("logs") == Identity.from_dict(ALICE)
        with pytest.raises(PermissionDeniedError):
            store.require_admin("logs")

    def test_require_admin_anonymous(self, gateway: MagicMock, snapshots: MemorySnapshotStore) -> None:
        with pytest.raises(PermissionDeniedError):
            SessionStore(gateway, snapshots).require_admin("anything")

    def test_register_as_dev_is_denied_without_request(self, gateway: MagicMock, snapshots: MemorySnapshotStore) -> None:
        snapshots.set(IDENTITY_KEY, json.dumps(ALICE))
        store = SessionStore(gateway, snapshots)
        store.initialize()
        with pytest.raises(PermissionDeniedError) as exc_info:
            store.register("bob", "secret1")
        assert exc_info.value.action == "account creation"
        gateway.post.assert_not_called()

    def test_register_as_admin(self, gateway: MagicMock, snapshots: MemorySnapshotStore) -> None:
        snapshots.set(IDENTITY_KEY, json.dumps(ADMIN))
        store = SessionStore(gateway, snapshots)
        store.initialize()
        gateway.post.return_value = {"status": "registered"}
        assert store.register("bob", "secret1", "dev") == {"status": "registered"}
        gateway.post.assert_called_once_with(
            "/auth/register", {"username": "bob", "password": "secret1", "role": "dev"}
        )
        assert store.identity.username == "admin"
