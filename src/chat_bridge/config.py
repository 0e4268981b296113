"""Controller configuration.

Plain dataclass with defaults; :meth:`ControllerConfig.from_env` overlays
environment variables so the same image runs locally and in a container.
"""
import os
from dataclasses import dataclass

from .site import CHATGPT, ChatSite

_TRUE = {"1", "true", "yes", "on"}


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    return float(raw) if raw else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    return raw in _TRUE if raw else default


@dataclass
class ControllerConfig:
    site: ChatSite = CHATGPT

    # Session store
    store_url: str = ""
    store_key: str = ""
    store_timeout: float = 15.0
    session_file: str = ""

    # HTTP front end
    host: str = "0.0.0.0"
    port: int = 3000
    api_key: str = ""

    # Browser lifecycle
    headless: bool = True
    navigation_timeout: float = 60.0
    input_timeout: float = 15.0
    key_delay_ms: float = 10.0
    max_typed_chars: int = 200  # longer prompts are pasted, not typed

    # Retry / recycle
    max_retries: int = 5
    attempt_timeout: float = 60.0
    recycle_threshold: int = 20

    # Stability detection
    poll_interval: float = 0.5
    max_polls: int = 200
    stable_polls: int = 4
    first_reply_timeout: float = 15.0

    # Identity sync
    sync_interval: float = 6 * 3600

    # Diagnostics ('' disables)
    event_log_dir: str = ""
    failure_bundle_dir: str = ""
    failure_bundle_verbosity: str = "standard"

    @classmethod
    def from_env(cls, **overrides) -> "ControllerConfig":
        """Defaults overlaid with environment variables, then *overrides*."""
        d = cls()
        values = dict(
            store_url=_env_str("REMOTE_STORE_URL", d.store_url),
            store_key=_env_str("REMOTE_STORE_KEY", d.store_key),
            session_file=_env_str("SESSION_FILE", d.session_file),
            host=_env_str("HOST", d.host),
            port=_env_int("PORT", d.port),
            api_key=_env_str("API_KEY", d.api_key),
            headless=_env_bool("HEADLESS", d.headless),
            navigation_timeout=_env_float("NAVIGATION_TIMEOUT", d.navigation_timeout),
            max_retries=_env_int("MAX_RETRIES", d.max_retries),
            attempt_timeout=_env_float("ATTEMPT_TIMEOUT", d.attempt_timeout),
            recycle_threshold=_env_int("MAX_REQUESTS", d.recycle_threshold),
            sync_interval=_env_float("SYNC_INTERVAL", d.sync_interval),
            event_log_dir=_env_str("EVENT_LOG_DIR", d.event_log_dir),
            failure_bundle_dir=_env_str("FAILURE_BUNDLE_DIR", d.failure_bundle_dir),
        )
        values.update(overrides)
        return cls(**values)
