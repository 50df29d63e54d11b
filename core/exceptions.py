"""Custom exception classes for the Amazon Music metadata service."""


class AmazonMusicError(Exception):
    """Base exception for all metadata service errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(AmazonMusicError):
    """Raised when the client is constructed with invalid configuration."""

    pass


class ServiceInitializationError(AmazonMusicError):
    """Raised when a service fails to initialize."""

    pass


class FetchError(AmazonMusicError):
    """Base class for failures fetching an upstream page."""

    def __init__(self, message: str, url: str, details: dict | None = None):
        self.url = url
        super().__init__(message, {"url": url, **(details or {})})


class FetchTimeoutError(FetchError):
    """Raised when the upstream page does not respond within the timeout."""

    def __init__(self, url: str, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(
            f"Request timeout after {timeout_ms}ms", url, {"timeout_ms": timeout_ms}
        )


class FetchHttpError(FetchError):
    """Raised when the upstream page answers with a non-2xx status."""

    def __init__(self, url: str, status_code: int, reason: str = ""):
        self.status_code = status_code
        message = f"HTTP {status_code}: {reason}" if reason else f"HTTP {status_code}"
        super().__init__(message, url, {"status_code": status_code})


class FetchNetworkError(FetchError):
    """Raised for transport-level failures (DNS, connection reset, TLS)."""

    pass
