"""Session identity and its process-wide in-memory cache."""
import logging
import time
from dataclasses import dataclass, field
from typing import Any

log = logging.getLogger(__name__)


@dataclass
class Identity:
    """A logged-in session: cookies, user-agent and a localStorage snapshot.

    Cookie records are opaque. They are stored and replayed as given; only
    the browser layer narrows them to the keys Playwright accepts.
    """
    cookies: list[dict] = field(default_factory=list)
    user_agent: str = ""
    local_storage: dict[str, str] = field(default_factory=dict)
    updated_at: float = field(default_factory=time.time)

    @property
    def is_valid(self) -> bool:
        """An identity without cookies cannot log anyone in."""
        return bool(self.cookies)

    def to_dict(self) -> dict:
        """Wire shape shared with the session store and the login tool."""
        data: dict[str, Any] = {
            "cookies": list(self.cookies),
            "updatedAt": int(self.updated_at * 1000),
        }
        if self.user_agent:
            data["userAgent"] = self.user_agent
        if self.local_storage:
            data["localStorage"] = dict(self.local_storage)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Identity":
        """Build from the wire shape. Tolerates missing optional fields."""
        cookies = data.get("cookies") or []
        if not isinstance(cookies, list):
            cookies = []
        storage = data.get("localStorage") or data.get("local_storage") or {}
        if not isinstance(storage, dict):
            storage = {}
        updated = data.get("updatedAt")
        if isinstance(updated, (int, float)) and updated > 0:
            updated_at = updated / 1000
        else:
            updated_at = time.time()
        return cls(
            cookies=[c for c in cookies if isinstance(c, dict)],
            user_agent=str(data.get("userAgent") or data.get("user_agent") or ""),
            local_storage={str(k): str(v) for k, v in storage.items()},
            updated_at=updated_at,
        )


class IdentityCache:
    """Lazily loads the identity from the store, at most once.

    Survives browser recycles so a relaunch replays the same identity
    without another round-trip to the store. A failed or empty load is not
    cached; the next :meth:`get` asks the store again.
    """

    def __init__(self, store):
        self._store = store
        self._identity: Identity | None = None

    @property
    def cached(self) -> Identity | None:
        return self._identity

    def get(self) -> Identity | None:
        """Return the cached identity, loading it from the store on first use."""
        if self._identity is not None:
            return self._identity
        identity = self._store.load()
        if identity is None or not identity.is_valid:
            log.warning("Session store returned no usable identity")
            return None
        log.info("Loaded identity from store (%d cookies)", len(identity.cookies))
        self._identity = identity
        return identity

    def put(self, identity: Identity) -> None:
        self._identity = identity

    def invalidate(self) -> None:
        """Drop the cached identity; the next get() reloads from the store."""
        if self._identity is not None:
            log.info("Identity cache invalidated")
        self._identity = None

    def update_cookies(self, cookies: list[dict]) -> Identity | None:
        """Replace the cookie set in place, keeping user-agent and storage."""
        if self._identity is None:
            return None
        self._identity.cookies = list(cookies)
        self._identity.updated_at = time.time()
        return self._identity
