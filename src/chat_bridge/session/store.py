"""Session store collaborators — opaque load/save of an Identity record.

The controller depends only on the :class:`SessionStore` protocol. Two
implementations ship: a remote JSON endpoint (what the deployed service
uses) and a local file (development, or a Playwright storage-state export).
"""
import json
import logging
import os
from typing import Protocol, runtime_checkable

import httpx

from ..engine.errors import ConfigurationError
from .identity import Identity

log = logging.getLogger(__name__)


@runtime_checkable
class SessionStore(Protocol):
    """Narrow contract between the controller and identity persistence."""

    def load(self) -> Identity | None:
        """Return the stored identity, or None if absent/unreadable."""
        ...

    def save(self, identity: Identity) -> bool:
        """Persist *identity*. Returns True on success."""
        ...


class RemoteSessionStore:
    """JSON blob store reached over HTTP.

    GET returns either ``{"data": "<json string>"}`` or the record itself;
    POST sends ``{"data": "<json string>"}``. Both carry the shared key in
    ``X-Auth-Key``.
    """

    def __init__(self, url: str, key: str = "", *, timeout: float = 15.0,
                 client: httpx.Client | None = None):
        if not url:
            raise ConfigurationError("REMOTE_STORE_URL is not set")
        self._url = url
        self._headers = {"X-Auth-Key": key} if key else {}
        self._client = client or httpx.Client(timeout=timeout)

    def load(self) -> Identity | None:
        try:
            resp = self._client.get(self._url, headers=self._headers)
            if resp.status_code != 200:
                log.warning("Store load returned HTTP %d", resp.status_code)
                return None
            body = resp.json()
            data = body.get("data") if isinstance(body, dict) and "data" in body else body
            if isinstance(data, str):
                data = json.loads(data)
            if not isinstance(data, dict):
                log.warning("Store load: unexpected payload type %s", type(data).__name__)
                return None
            return Identity.from_dict(data)
        except (httpx.HTTPError, ValueError) as e:
            log.error("Store load failed: %s", e)
            return None

    def save(self, identity: Identity) -> bool:
        payload = {"data": json.dumps(identity.to_dict(), ensure_ascii=False)}
        try:
            resp = self._client.post(self._url, json=payload, headers=self._headers)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            log.error("Store save failed: %s", e)
            return False
        log.info("Session synced to remote store")
        return True

    def close(self) -> None:
        self._client.close()


class FileSessionStore:
    """Identity kept in a local JSON file.

    Reads the store's own shape as well as a Playwright storage-state export
    (``{"cookies": [...], "origins": [{"origin": ..., "localStorage": [...]}]}``),
    taking localStorage from the entry whose origin matches *origin*.
    """

    def __init__(self, path: str, origin: str = ""):
        if not path:
            raise ConfigurationError("SESSION_FILE is not set")
        self._path = path
        self._origin = origin

    @property
    def path(self) -> str:
        return self._path

    def load(self) -> Identity | None:
        if not os.path.isfile(self._path):
            log.warning("Session file not found: %s", self._path)
            return None
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log.error("Session file unreadable (%s): %s", self._path, e)
            return None
        if not isinstance(data, dict):
            return None
        identity = Identity.from_dict(data)
        if not identity.local_storage and isinstance(data.get("origins"), list):
            identity.local_storage = self._storage_from_origins(data["origins"])
        return identity

    def save(self, identity: Identity) -> bool:
        tmp_path = self._path + ".tmp"
        try:
            directory = os.path.dirname(os.path.abspath(self._path))
            os.makedirs(directory, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(identity.to_dict(), f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self._path)
        except OSError as e:
            log.error("Session file save failed: %s", e)
            return False
        log.info("Session saved to %s", self._path)
        return True

    def _storage_from_origins(self, origins: list) -> dict[str, str]:
        for entry in origins:
            if not isinstance(entry, dict):
                continue
            if self._origin and entry.get("origin") != self._origin:
                continue
            items = entry.get("localStorage") or []
            return {
                str(item["name"]): str(item.get("value", ""))
                for item in items
                if isinstance(item, dict) and "name" in item
            }
        return {}


def store_from_config(config) -> SessionStore:
    """Remote store when a URL is configured, else the file store."""
    if config.store_url:
        return RemoteSessionStore(config.store_url, config.store_key,
                                  timeout=config.store_timeout)
    if config.session_file:
        return FileSessionStore(config.session_file, origin=config.site.origin)
    raise ConfigurationError("configure REMOTE_STORE_URL or SESSION_FILE")
