"""engine — exchange orchestration, stability detection and health monitoring."""
from .deadline import Deadline  # noqa: F401
from .errors import (  # noqa: F401
    BridgeError,
    BridgeSignal,
    BusyError,
    ConfigurationError,
    DeadlineExceededError,
    ExhaustedRetriesError,
    InputNotFoundError,
    LoginRequiredError,
    NavigationTimeoutError,
    NoResponseError,
    RetryableError,
    StabilityTimeoutError,
)
from .executor import RequestExecutor  # noqa: F401
from .failure_bundle import BundleVerbosity, FailureBundle, capture_failure_bundle, save_failure_bundle  # noqa: F401
from .health import HealthMonitor  # noqa: F401
from .stability import StabilityDetector  # noqa: F401
