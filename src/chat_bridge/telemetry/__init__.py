"""telemetry — structured JSONL event trail."""
from .logger import ExchangeEventLogger  # noqa: F401
