"""browser — the single Playwright browser the controller drives.

Site-agnostic: selectors and URLs come from a ChatSite.
"""
from .cookies import apply_cookies, to_playwright_cookies  # noqa: F401
from .lifecycle import LifecycleManager  # noqa: F401
from .stealth import build_stealth_shim, install_stealth  # noqa: F401
from .ua import build_user_agent, resolve_user_agent  # noqa: F401
