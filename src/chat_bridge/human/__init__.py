"""human — human-like timing for prompt submission."""
from .behavior import jitter_delay, human_pause, human_type  # noqa: F401
