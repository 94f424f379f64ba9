"""Gateway: JSON request/response envelope over a cookie-carrying requests.Session."""

import logging
from typing import Any, Callable, TypeVar

import requests

from .errors import ApiError

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "/api"
GENERIC_FAILURE = "Request failed"

T = TypeVar("T")


def parse_body(path: str, parse: Callable[[Any], T], data: Any) -> T:
    """Apply parse to a decoded body; a body of the wrong shape becomes ApiError."""
    try:
        return parse(data)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ApiError(f"Malformed response from {path}: {e}", path=path, cause=e) from e


class Gateway:
    """
    Single point of HTTP failure translation for the console.

    Every call goes through _handle(): non-2xx responses become ApiError with the
    status code and the body's "error"/"message" text; 204 yields an empty dict.
    The authenticated session travels implicitly in the session's cookie jar.
    """

    def __init__(
        self,
        base_url: str,
        *,
        prefix: str = DEFAULT_PREFIX,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._prefix = "/" + prefix.strip("/") if prefix.strip("/") else ""
        self._timeout = timeout
        self._session = session if session is not None else requests.Session()
        self._session.headers.setdefault("Accept", "application/json")

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def session(self) -> requests.Session:
        return self._session

    def url_for(self, path: str, *, prefixed: bool = True) -> str:
        """Join base URL, API prefix and a relative path."""
        rel = "/" + path.lstrip("/")
        return f"{self._base_url}{self._prefix if prefixed else ''}{rel}"

    def _handle(self, resp: requests.Response, path: str) -> Any:
        if not resp.ok:
            message: str | None = None
            try:
                body = resp.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                # an explicit "error" wins even when empty
                message = body.get("error") if body.get("error") is not None else body.get("message")
            logger.debug("%s failed with HTTP %s: %s", path, resp.status_code, message)
            raise ApiError(str(message) if message else GENERIC_FAILURE, status=resp.status_code, path=path)
        if resp.status_code == 204:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError("Invalid JSON response", status=resp.status_code, path=path, cause=e) from e

    def _request(self, method: str, path: str, *, prefixed: bool = True, **kwargs: Any) -> Any:
        url = self.url_for(path, prefixed=prefixed)
        logger.debug("%s %s", method, url)
        try:
            resp = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as e:
            raise ApiError(f"Connection error: {e}", path=path, cause=e) from e
        return self._handle(resp, path)

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET path under the API prefix and return the decoded JSON body."""
        return self._request("GET", path, params=params)

    def post(self, path: str, body: Any = None) -> Any:
        """POST path under the API prefix; body (if any) is sent as JSON."""
        if body is None:
            return self._request("POST", path)
        return self._request("POST", path, json=body)

    def health(self) -> Any:
        """GET /health on the backend root (outside the API prefix)."""
        return self._request("GET", "/health", prefixed=False)

    def export_cookies(self) -> dict[str, str]:
        """Return the session cookies as a plain dict (for persisting a login)."""
        return requests.utils.dict_from_cookiejar(self._session.cookies)

    def import_cookies(self, cookies: dict[str, str]) -> None:
        self._session.cookies.update(requests.utils.cookiejar_from_dict(cookies))

    def close(self) -> None:
        """Close the underlying HTTP session."""
        try:
            self._session.close()
        except Exception as e:
            logger.warning("Error closing HTTP session: %s", e)

    def __enter__(self) -> "Gateway":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
