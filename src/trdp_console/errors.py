"""Exceptions for trdp-console: API/transport failures, bad local snapshots, role checks."""


class TrdpConsoleError(Exception):
    """Base exception for trdp-console."""

    pass


class ApiError(TrdpConsoleError):
    """
    Raised by the gateway for any failed request.

    status is the HTTP status code, or None when the request never produced a
    response (connection refused, timeout, ...).
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        path: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.message = message
        self.status = status
        self.path = path
        self.cause = cause
        super().__init__(message)


class SnapshotError(TrdpConsoleError):
    """Raised when a locally persisted snapshot cannot be decoded."""

    def __init__(self, key: str, message: str | None = None) -> None:
        self.key = key
        self._msg = message or f"Malformed snapshot: {key!r}"
        super().__init__(self._msg)


class PermissionDeniedError(TrdpConsoleError):
    """Raised when a protected or admin-only operation is attempted without the needed identity."""

    def __init__(self, action: str, message: str | None = None) -> None:
        self.action = action
        self._msg = message or f"Admin role required for {action}"
        super().__init__(self._msg)
