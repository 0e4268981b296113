"""session — identity cache, store collaborators and time-gated sync."""
from .identity import Identity, IdentityCache  # noqa: F401
from .store import FileSessionStore, RemoteSessionStore, SessionStore, store_from_config  # noqa: F401
from .sync import SyncScheduler  # noqa: F401
