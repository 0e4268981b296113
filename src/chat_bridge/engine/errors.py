"""Normalized error signals for the browser session controller.

Every failure raised by the lifecycle, the stability detector or the
executor carries a BridgeSignal; the HTTP front end picks its status code
from the signal rather than from the concrete class.
"""
from enum import Enum


class BridgeSignal(Enum):
    """Normalized error signals."""
    BUSY = "busy"                  # another exchange is in flight
    AUTH_EXPIRED = "auth_expired"  # identity did not yield a usable session
    TRANSIENT = "transient"        # worth a reinit and another attempt
    FATAL = "fatal"                # unrecoverable for this request
    CONFIG = "config"              # collaborator misconfigured


class BridgeError(Exception):
    """Exception carrying a normalized BridgeSignal."""

    signal = BridgeSignal.FATAL

    def __init__(self, message: str = "", signal: BridgeSignal | None = None):
        if signal is not None:
            self.signal = signal
        super().__init__(message or self.signal.value)


class ConfigurationError(BridgeError):
    """Session store credentials or location are missing."""
    signal = BridgeSignal.CONFIG


class LoginRequiredError(BridgeError):
    """Applied identity is missing or stale — re-run the login tool."""
    signal = BridgeSignal.AUTH_EXPIRED


class BusyError(BridgeError):
    """An exchange is already in flight on the single page."""
    signal = BridgeSignal.BUSY


class RetryableError(BridgeError):
    """Per-attempt failure; the executor relaunches the browser and retries."""
    signal = BridgeSignal.TRANSIENT


class NavigationTimeoutError(RetryableError):
    pass


class InputNotFoundError(RetryableError):
    pass


class NoResponseError(RetryableError):
    """No reply element appeared after the prompt was submitted."""


class StabilityTimeoutError(RetryableError):
    """Reply text kept changing until the poll budget ran out."""

    def __init__(self, message: str = "", last_text: str = ""):
        self.last_text = last_text
        super().__init__(message)


class DeadlineExceededError(RetryableError):
    """The per-attempt deadline expired mid-operation."""


class ExhaustedRetriesError(BridgeError):
    """All attempts failed. ``last_error`` holds the final underlying failure."""
    signal = BridgeSignal.FATAL

    def __init__(self, attempts: int, last_error: BaseException | None = None):
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"all {attempts} attempts failed{detail}")
