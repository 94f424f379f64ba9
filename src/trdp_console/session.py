"""SessionStore: the current identity, cached in a snapshot port and reconciled with the backend."""

import logging

from .errors import ApiError, PermissionDeniedError, SnapshotError
from .gateway import Gateway
from .snapshot import IDENTITY_KEY, SnapshotStore, decode_identity_snapshot, encode_identity_snapshot
from .types import Identity, Role

logger = logging.getLogger(__name__)

PROFILE_PATHS = ("/account/profile", "/account/me")


class SessionStore:
    """
    Holds the authenticated identity (or None for anonymous).

    The snapshot is only a cache: every change of identity is written through
    to it (or removed from it), and it is trusted without a round-trip only
    during initialize().
    """

    def __init__(self, gateway: Gateway, snapshots: SnapshotStore) -> None:
        self._gateway = gateway
        self._snapshots = snapshots
        self._identity: Identity | None = None
        self._initialized = False

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    @property
    def is_admin(self) -> bool:
        return self._identity is not None and self._identity.is_admin

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _set_identity(self, identity: Identity | None) -> None:
        self._identity = identity
        if identity is None:
            self._snapshots.remove(IDENTITY_KEY)
        else:
            self._snapshots.set(IDENTITY_KEY, encode_identity_snapshot(identity))

    def initialize(self) -> Identity | None:
        """
        Adopt the cached identity if it is well-formed; otherwise evict it and
        ask the backend. Runs once; later calls return the current identity.
        """
        if self._initialized:
            return self._identity
        self._initialized = True

        raw = self._snapshots.get(IDENTITY_KEY)
        if raw is not None:
            try:
                self._identity = decode_identity_snapshot(raw)
                logger.debug("Identity restored from snapshot: %s", self._identity.username)
                return self._identity
            except SnapshotError as e:
                logger.warning("Discarding identity snapshot: %s", e)
                self._snapshots.remove(IDENTITY_KEY)

        profile = self.fetch_profile()
        if profile is not None:
            self._set_identity(profile)
        return self._identity

    def fetch_profile(self) -> Identity | None:
        """Fetch the profile; None on any failure (anonymous, not an error)."""
        for i, path in enumerate(PROFILE_PATHS):
            try:
                data = self._gateway.get(path)
            except ApiError as e:
                # older backends only expose the /me alias
                if e.status == 404 and i + 1 < len(PROFILE_PATHS):
                    continue
                logger.warning("Unable to load profile: %s", e)
                return None
            user = data.get("user") if isinstance(data, dict) else None
            if user is None:
                return None
            try:
                return Identity.from_dict(user)
            except ValueError as e:
                logger.warning("Ignoring malformed profile: %s", e)
                return None
        return None

    def login(self, username: str, password: str) -> Identity:
        """
        Exchange credentials, then refresh the profile. ApiError from the
        credential exchange propagates and leaves the identity untouched.
        """
        self._gateway.post("/auth/login", {"username": username, "password": password})
        profile = self.fetch_profile()
        identity = profile if profile is not None else Identity.anonymous_default(username)
        self._set_identity(identity)
        self._initialized = True
        logger.info("Logged in as %s (%s)", identity.username, identity.role)
        return identity

    def logout(self) -> None:
        """Invalidate the server session; local identity is cleared even if that call fails."""
        try:
            self._gateway.post("/auth/logout")
        finally:
            self._set_identity(None)

    def require_login(self, action: str) -> Identity:
        """Gate for every protected view: any known identity passes."""
        if self._identity is None:
            raise PermissionDeniedError(action, f"Login required for {action}")
        return self._identity

    def require_admin(self, action: str) -> Identity:
        """Authorization predicate for elevated operations."""
        if self._identity is None or not self._identity.is_admin:
            raise PermissionDeniedError(action)
        return self._identity

    def register(self, username: str, password: str, role: str = Role.DEV.value) -> dict:
        """Create a backend account (admin only). Does not change the current identity."""
        self.require_admin("account creation")
        return self._gateway.post(
            "/auth/register",
            {"username": username, "password": password, "role": role},
        )
