"""User-Agent construction for the headless browser."""

# Headless Chromium advertises "HeadlessChrome"; replay a desktop Linux
# Chrome instead when the identity carries no user-agent of its own.
_DEFAULT_TEMPLATE = (
    "Mozilla/5.0 (X11; Linux x86_64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/{version} Safari/537.36"
)


def build_user_agent(chrome_version: str, template: str = "") -> str:
    """Build a User-Agent string for the given Chrome version."""
    return (template or _DEFAULT_TEMPLATE).format(version=chrome_version)


def resolve_user_agent(identity, chrome_version: str) -> str:
    """The identity's own user-agent if it captured one, else a built one."""
    if identity is not None and identity.user_agent:
        return identity.user_agent
    return build_user_agent(chrome_version)
