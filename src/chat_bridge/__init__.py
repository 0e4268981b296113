"""chat-bridge — request/response API over a chat web app, driven through one headless browser.

Provides the browser session controller (lifecycle, identity cache and
sync, retrying exchange executor, reply stability detection), session
store collaborators, and a small HTTP front end.
"""
from .config import ControllerConfig  # noqa: F401
from .controller import ChatController  # noqa: F401
from .engine.errors import BridgeError, BridgeSignal  # noqa: F401
from .site import CHATGPT, ChatSite  # noqa: F401
