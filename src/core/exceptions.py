"""Unified exception hierarchy for the EnVivo ingestion core.

Exception categories:
- Configuration errors (unknown transform, invalid scraper config)
- Source fetch errors (auth, rate limiting, timeout, network, parse)
- Storage errors (database failures, missing rows)

Business-rule rejections are not exceptions; see ``ValidationResult``.
"""


class EnVivoError(Exception):
    """Base exception for all EnVivo errors."""

    def __init__(self, message: str, source: str | None = None, details: dict | None = None):
        self.source = source
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        msg = super().__str__()
        if self.source:
            msg = f"[{self.source}] {msg}"
        return msg


# ============================================================
# CONFIGURATION ERRORS
# ============================================================


class ConfigurationError(EnVivoError):
    """Base class for configuration-related errors.

    Raised at source registration time, before any network I/O.
    """
    pass


class SourceNotFoundError(ConfigurationError):
    """Raised when a source name is not found in the registry."""

    def __init__(self, name: str, available: list[str] | None = None):
        self.name = name
        self.available = available
        msg = f"Unknown source: {name}"
        if available:
            msg += f". Available: {', '.join(available)}"
        super().__init__(msg, source=name)


class UnknownTransformError(ConfigurationError):
    """Raised when a config references a transform that is not registered."""

    def __init__(self, transform: str, field: str | None = None, source: str | None = None):
        self.transform = transform
        self.field = field
        msg = f"Unknown transform function: {transform}"
        if field:
            msg += f" (field: {field})"
        super().__init__(msg, source=source, details={"transform": transform, "field": field})


class InvalidConfigError(ConfigurationError):
    """Raised when configuration values are invalid."""

    def __init__(self, message: str, field: str | None = None, source: str | None = None):
        self.field = field
        details = {"field": field} if field else {}
        super().__init__(message, source=source, details=details)


# ============================================================
# SOURCE FETCH ERRORS
# ============================================================


class SourceFetchError(EnVivoError):
    """Base class for failures while fetching from one source."""
    pass


class AuthError(SourceFetchError):
    """Raised when the source rejects our credentials (HTTP 401)."""

    def __init__(self, message: str = "Invalid API credentials", source: str | None = None):
        super().__init__(message, source=source, details={"status_code": 401})


class RateLimitError(SourceFetchError):
    """Raised when rate limited by the source."""

    def __init__(
        self,
        source: str | None = None,
        retry_after: int | None = None,
        url: str | None = None,
    ):
        self.retry_after = retry_after
        self.url = url
        msg = "Rate limited by source"
        if retry_after:
            msg += f", retry after {retry_after}s"
        super().__init__(
            msg,
            source=source,
            details={"retry_after": retry_after, "url": url},
        )


class TimeoutError(SourceFetchError):
    """Raised when a request or page render times out."""

    def __init__(self, url: str, timeout: float, source: str | None = None):
        self.url = url
        self.timeout = timeout
        super().__init__(
            f"Request timed out after {timeout}s",
            source=source,
            details={"url": url, "timeout": timeout},
        )


class NetworkError(SourceFetchError):
    """Raised for connection failures and unexpected HTTP statuses."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
        source: str | None = None,
    ):
        self.status_code = status_code
        self.url = url
        details = {}
        if status_code:
            details["status_code"] = status_code
        if url:
            details["url"] = url
        super().__init__(message, source=source, details=details)


class ParseError(SourceFetchError):
    """Base class for data parsing errors."""
    pass


class MissingFieldError(ParseError):
    """Raised when a required field is missing."""

    def __init__(self, field: str, event_id: str | None = None, source: str | None = None):
        self.field = field
        self.event_id = event_id
        msg = f"Missing required field: {field}"
        if event_id:
            msg += f" (event: {event_id})"
        super().__init__(msg, source=source, details={"field": field, "event_id": event_id})


class InvalidDateError(ParseError):
    """Raised when a date cannot be parsed."""

    def __init__(self, value: str, source: str | None = None):
        self.value = value
        super().__init__(f"Invalid date: {value}", source=source, details={"value": value})


# ============================================================
# STORAGE ERRORS
# ============================================================


class StorageError(EnVivoError):
    """Base class for storage-related errors."""
    pass


class EventNotFoundError(StorageError):
    """Raised when an event id does not exist."""

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Event not found: {event_id}", details={"event_id": event_id})


RETRYABLE_ERRORS: tuple[type[Exception], ...] = (
    NetworkError,
    TimeoutError,
    RateLimitError,
)
