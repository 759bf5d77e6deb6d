"""Core modules for the ingestion engine."""

from src.core.event_model import (
    BlacklistEntry,
    Event,
    EventCategory,
    GlobalPreferences,
    RawEvent,
    VenueSize,
)
from src.core.exceptions import (
    AuthError,
    ConfigurationError,
    EnVivoError,
    NetworkError,
    ParseError,
    RateLimitError,
    SourceFetchError,
    StorageError,
    TimeoutError,
)
from src.core.retry import RetryPolicy, retry_async

__all__ = [
    # Event models
    "BlacklistEntry",
    "Event",
    "EventCategory",
    "GlobalPreferences",
    "RawEvent",
    "VenueSize",
    # Exceptions
    "EnVivoError",
    "ConfigurationError",
    "SourceFetchError",
    "AuthError",
    "RateLimitError",
    "TimeoutError",
    "NetworkError",
    "ParseError",
    "StorageError",
    # Retry
    "RetryPolicy",
    "retry_async",
]
