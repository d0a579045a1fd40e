"""Exception hierarchy shared by the bridge components."""

from typing import Optional


class BridgeError(Exception):
    """Base exception for bridge errors."""
    pass


class ConfigurationError(BridgeError):
    """Raised when configuration values cannot be used (e.g. malformed base URL)."""
    pass


class TransportError(BridgeError):
    """Raised when the remote API cannot be reached at the network level."""
    pass


class RemoteApiError(BridgeError):
    """Raised when the remote API answers with a non-2xx status.

    Attributes:
        status: HTTP status code from the response.
        message: Error message extracted from the response body.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        status: int,
        message: str,
        request_url: Optional[str] = None,
    ):
        self.status = status
        self.message = message
        self.request_url = request_url
        super().__init__(f"GitLab API error {status}: {message}")


class NotFoundError(RemoteApiError):
    """Raised when the requested entity does not exist (404)."""
    pass


class RateLimitError(RemoteApiError):
    """Raised when the rate limit is still exceeded after all retries.

    Attributes:
        retry_after: Seconds the server asked us to wait, if known.
    """

    def __init__(
        self,
        status: int,
        message: str,
        retry_after: Optional[float] = None,
        request_url: Optional[str] = None,
    ):
        super().__init__(status, message, request_url=request_url)
        self.retry_after = retry_after


class ReconciliationError(BridgeError):
    """Raised when a reconciliation pass cannot enumerate its projects."""
    pass
