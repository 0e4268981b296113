"""Cookie record passthrough between stored identities and Playwright."""
import logging

log = logging.getLogger(__name__)

# Keys Playwright's BrowserContext.add_cookies() accepts. Anything else a
# capture tool recorded (size, session, priority, ...) is dropped.
_PLAYWRIGHT_COOKIE_KEYS = (
    "name", "value", "url", "domain", "path",
    "expires", "httpOnly", "secure", "sameSite",
)
_SAME_SITE = {"strict": "Strict", "lax": "Lax", "none": "None"}


def to_playwright_cookies(cookies: list[dict]) -> list[dict]:
    """Narrow opaque cookie records to what add_cookies() accepts.

    Values are passed through untouched. Records missing a name or any
    scope (url or domain) are skipped since the browser would reject them.
    """
    out = []
    for cookie in cookies:
        if not isinstance(cookie, dict) or "name" not in cookie:
            continue
        if not cookie.get("url") and not cookie.get("domain"):
            continue
        record = {k: cookie[k] for k in _PLAYWRIGHT_COOKIE_KEYS if k in cookie}
        record.setdefault("value", "")
        if "domain" in record and "url" not in record:
            record.setdefault("path", "/")
        same_site = record.get("sameSite")
        if same_site is not None:
            normalized = _SAME_SITE.get(str(same_site).lower())
            if normalized:
                record["sameSite"] = normalized
            else:
                record.pop("sameSite")
        out.append(record)
    return out


def apply_cookies(context, cookies: list[dict]) -> int:
    """Add *cookies* to a browser context. Returns the number applied."""
    records = to_playwright_cookies(cookies)
    if len(records) != len(cookies):
        log.warning("Skipped %d malformed cookie records", len(cookies) - len(records))
    if records:
        context.add_cookies(records)
    return len(records)
