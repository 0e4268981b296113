"""Human-like timing for prompt submission.

The chat front end hydrates its composer asynchronously; typing the instant
the selector appears drops the first keystrokes. A short log-normal settle
pause and per-key typing delay both absorb that jitter and avoid the
perfectly uniform timing bot checks look for.
"""

import logging
import math
import random

log = logging.getLogger(__name__)


def _safe_float(val, default: float) -> float:
    try:
        f = float(val)
        if math.isfinite(f):
            return f
    except (TypeError, ValueError):
        pass
    return default


def jitter_delay(low: float, high: float, sigma: float = 0.3,
                 rng: random.Random | None = None) -> float:
    """Log-normal duration centred between *low* and *high*, in seconds.

    Clamped to [0.5 * low, 2 * high]. Mostly quick with occasional longer
    pauses, like human reaction times.
    """
    rng = rng or random
    low = max(_safe_float(low, 0.05), 0.001)
    high = _safe_float(high, low)
    if high < low:
        low, high = high, low
    sigma = max(0.01, _safe_float(sigma, 0.3))
    mu = math.log((low + high) / 2)
    delay = rng.lognormvariate(mu, sigma)
    return max(low * 0.5, min(delay, high * 2))


def human_pause(page, low: float, high: float, *, cap_ms: float | None = None) -> float:
    """Pause via page.wait_for_timeout so Playwright keeps pumping events.

    Returns the pause actually taken, in seconds.
    """
    delay_ms = jitter_delay(low, high) * 1000
    if cap_ms is not None:
        delay_ms = min(delay_ms, cap_ms)
    page.wait_for_timeout(delay_ms)
    log.debug(f"    settle {delay_ms / 1000:.2f}s")
    return delay_ms / 1000


def human_type(page, text: str, *, key_delay_ms: float = 10.0) -> None:
    """Type *text* into the focused element with a small per-key delay."""
    delay = max(0.0, _safe_float(key_delay_ms, 10.0))
    page.keyboard.type(text, delay=delay * random.uniform(0.8, 1.5))
