"""Diagnostic snapshot of a failed exchange attempt.

Captures what the page looked like when an attempt failed (URL, title,
visible text, how many reply bubbles rendered) so stale sessions, bot
walls and selector drift can be told apart after the fact. Zero overhead
when disabled (verbosity="off").
"""
import json
import logging
import os
import time
from dataclasses import asdict, dataclass, field

log = logging.getLogger(__name__)

_COUNT_REPLIES = "(selector) => document.querySelectorAll(selector).length"


class BundleVerbosity:
    OFF = "off"             # No capture at all
    MINIMAL = "minimal"     # error + timing only
    STANDARD = "standard"   # + page URL/title/text snippet/reply count
    FULL = "full"           # + screenshot


@dataclass
class FailureBundle:
    site: str
    attempt: int
    reason: str
    message: str
    prompt_chars: int = 0
    page_url: str = ""
    page_title: str = ""
    page_text_snippet: str = ""
    input_present: bool | None = None
    reply_count: int = -1
    elapsed: float = 0.0
    health_score: float = -1.0
    screenshot_path: str = ""
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return asdict(self)


def capture_failure_bundle(
    page,
    site,
    attempt: int,
    error: BaseException,
    *,
    prompt_chars: int = 0,
    elapsed: float = 0.0,
    health_score: float = -1.0,
    verbosity: str = BundleVerbosity.STANDARD,
    screenshot_dir: str = "",
) -> FailureBundle:
    """Best-effort capture of failure diagnostics. Never raises."""
    bundle = FailureBundle(
        site=getattr(site, "name", "unknown"),
        attempt=attempt,
        reason=type(error).__name__,
        message=str(error)[:500],
        prompt_chars=prompt_chars,
        elapsed=elapsed,
        health_score=health_score,
    )
    if page is None:
        return bundle

    if verbosity in (BundleVerbosity.STANDARD, BundleVerbosity.FULL):
        try:
            bundle.page_url = page.url or ""
        except Exception:
            pass
        try:
            bundle.page_title = page.title() or ""
        except Exception:
            pass
        try:
            snippet = page.evaluate("() => document.body?.innerText?.slice(0, 2000) || ''")
            bundle.page_text_snippet = snippet or ""
        except Exception:
            pass
        try:
            bundle.input_present = page.query_selector(site.input_selector) is not None
            bundle.reply_count = int(page.evaluate(_COUNT_REPLIES, site.reply_selector))
        except Exception:
            pass

    if verbosity == BundleVerbosity.FULL and screenshot_dir:
        try:
            os.makedirs(screenshot_dir, exist_ok=True)
            path = os.path.join(screenshot_dir, f"fail_{_stamp()}_a{attempt}.png")
            page.screenshot(path=path, full_page=False)
            bundle.screenshot_path = path
        except Exception:
            pass

    return bundle


def save_failure_bundle(bundle: FailureBundle, base_dir: str = "data/logs/failures") -> str:
    """Save bundle to JSON. Returns file path, or '' on failure."""
    try:
        out_dir = os.path.join(base_dir, bundle.site or "unknown")
        os.makedirs(out_dir, exist_ok=True)
        path = os.path.join(out_dir, f"{_stamp()}_a{bundle.attempt}_{bundle.reason}.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(bundle.to_dict(), f, ensure_ascii=False, indent=2, default=str)
        return path
    except Exception as e:
        log.debug(f"Failed to save failure bundle: {e}")
        return ""


def _stamp() -> str:
    return time.strftime("%Y%m%d_%H%M%S") + f"_{int(time.time() * 1000) % 1000:03d}"
