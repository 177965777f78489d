from .async_utils import CallOutcome, capture_call
from .logging import log_event, sanitize_text, sanitize_value

__all__ = [
    "CallOutcome",
    "capture_call",
    "log_event",
    "sanitize_text",
    "sanitize_value",
]
