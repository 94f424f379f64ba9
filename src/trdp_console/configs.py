"""ConfigRegistry: list/detail view over TRDP configuration documents and their activation."""

import logging
from typing import Any

from .errors import ApiError
from .gateway import Gateway, parse_body
from .types import ConfigurationDocument

logger = logging.getLogger(__name__)


def _config_list(data: Any) -> tuple[ConfigurationDocument, ...]:
    return tuple(ConfigurationDocument.from_dict(c) for c in data.get("configs", []))


def _config_detail(data: Any) -> ConfigurationDocument:
    return ConfigurationDocument.from_dict(data["config"])


class ConfigRegistry:
    """
    Client-side view of the configuration documents.

    Invariant: `selected` is None or its id is present in the last successful
    list(). Activation is fire-and-report; the active document is tracked by
    the backend only.
    """

    def __init__(self, gateway: Gateway) -> None:
        self._gateway = gateway
        self._configs: tuple[ConfigurationDocument, ...] = ()
        self._selected: ConfigurationDocument | None = None
        self.last_error: str | None = None
        self.notice: str | None = None

    @property
    def configs(self) -> tuple[ConfigurationDocument, ...]:
        return self._configs

    @property
    def selected(self) -> ConfigurationDocument | None:
        return self._selected

    def _fail(self, e: ApiError) -> None:
        self.last_error = e.message
        logger.debug("Config operation failed: %s", e)

    def list(self) -> tuple[ConfigurationDocument, ...]:
        """Refresh the collection; drop the selection if its document disappeared."""
        self.last_error = None
        try:
            configs = parse_body("/trdp/configs", _config_list, self._gateway.get("/trdp/configs"))
        except ApiError as e:
            self._fail(e)
            raise
        self._configs = configs
        if self._selected is not None and not any(c.id == self._selected.id for c in configs):
            logger.debug("Selected config %s no longer listed; clearing selection", self._selected.id)
            self._selected = None
        return configs

    def load(self, config_id: int) -> ConfigurationDocument:
        """Fetch full detail (with XML) and make it the selection."""
        path = f"/trdp/configs/{config_id}"
        self.last_error = None
        try:
            doc = parse_body(path, _config_detail, self._gateway.get(path))
        except ApiError as e:
            self._fail(e)
            raise
        self._selected = doc
        return doc

    def create(self, name: str, xml: str) -> ConfigurationDocument:
        """
        Submit a new document. XML is opaque here; the server stores its own
        validation verdict. On success the list is refreshed and the new
        document selected.
        """
        self.last_error = None
        self.notice = None
        try:
            data = self._gateway.post("/trdp/configs", {"name": name, "xml": xml})
            doc = parse_body("/trdp/configs", _config_detail, data)
        except ApiError as e:
            self._fail(e)
            raise
        try:
            self.list()
        except ApiError as e:
            # the document exists server-side; keep it selected and report the stale list
            logger.warning("Config %s created but list refresh failed: %s", doc.id, e)
        self._selected = doc
        self.notice = "Configuration saved"
        logger.info("Created config %s (%s): %s", doc.id, doc.name, doc.validation_status)
        return doc

    def activate(self, config_id: int) -> None:
        """Ask the backend to make config_id the active document; no local state changes."""
        self.last_error = None
        self.notice = None
        try:
            self._gateway.post(f"/trdp/configs/{config_id}/activate")
        except ApiError as e:
            self._fail(e)
            raise
        self.notice = f"Configuration {config_id} activated"
        logger.info("Activated config %s", config_id)

    def plan(self, config_id: int) -> dict[str, Any]:
        """Return the backend's PD/MD execution plan for a document."""
        self.last_error = None
        try:
            data = self._gateway.get(f"/trdp/configs/{config_id}/plan")
        except ApiError as e:
            self._fail(e)
            raise
        return data if isinstance(data, dict) else {"plan": data}

    def select(self, config: ConfigurationDocument | None) -> None:
        self._selected = config

    def clear_selection(self) -> None:
        self._selected = None
