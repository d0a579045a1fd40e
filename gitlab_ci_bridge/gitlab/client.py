"""GitLab REST API client with retry, rate limiting and pagination.

The client is synchronous: every call blocks until GitLab answers or the
retries are exhausted. It is the single handle through which the catalog
talks to GitLab, and its lifetime is owned by the lifecycle controller.
"""

import random
import time
from typing import Any, Callable, Dict, Iterator, Optional
from urllib.parse import quote

import httpx
import structlog

from gitlab_ci_bridge.common.errors import (
    NotFoundError,
    RateLimitError,
    RemoteApiError,
    TransportError,
)

logger = structlog.get_logger()


def encode_project_id(project: Any) -> str:
    """Encode a numeric id or ``namespace/path`` for use in a URL path."""
    return quote(str(project), safe="")


class GitLabClient:
    """Synchronous GitLab API v4 client.

    Implements:

    - Retry with exponential backoff and full jitter for 408, 429, 5xx and
      network-level failures on GET and DELETE; POST is only retried on 429
    - ``Retry-After`` / ``RateLimit-Reset`` handling for 429 responses
    - Transparent pagination through ``X-Next-Page`` or ``Link`` headers

    Example:
        >>> with GitLabClient("https://gitlab.example.com", token="glpat-xxx") as client:
        ...     user = client.get("/user")
    """

    # HTTP status codes that should trigger a retry
    RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

    # Methods resent after a timeout or server error. A 429 is retried for
    # every method.
    IDEMPOTENT_METHODS = {"GET", "HEAD", "DELETE"}

    def __init__(
        self,
        base_url: str,
        token: str,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        timeout: float = 30.0,
        per_page: int = 100,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the GitLab client.

        Args:
            base_url: GitLab instance URL, e.g. ``https://gitlab.com``.
            token: Access token sent as ``PRIVATE-TOKEN``.
            max_retries: Maximum number of retry attempts.
            base_delay: Base delay in seconds for exponential backoff.
            max_delay: Maximum delay in seconds between retries.
            timeout: Request timeout in seconds.
            per_page: Page size for paginated listings.
            transport: Optional httpx transport, used by tests.
            sleep: Sleep function used between retries.
        """
        self.base_url = base_url.rstrip("/")
        self.api_url = f"{self.base_url}/api/v4"
        self.token = token
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self.per_page = per_page
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.Client] = None

    @property
    def client(self) -> httpx.Client:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                base_url=self.api_url,
                headers=self._default_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        return {
            "PRIVATE-TOKEN": self.token,
            "Accept": "application/json",
            "User-Agent": "gitlab-ci-bridge/0.1",
        }

    def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
        self._client = None

    def __enter__(self) -> "GitLabClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _calculate_backoff(self, attempt: int) -> float:
        """Exponential backoff with full jitter.

        Args:
            attempt: The current retry attempt (0-indexed).
        """
        exponential_delay = self.base_delay * (2 ** attempt)
        capped_delay = min(exponential_delay, self.max_delay)
        return random.uniform(0, capped_delay)

    def _retry_after(self, response: httpx.Response) -> Optional[float]:
        """Seconds to wait according to GitLab's rate limit headers."""
        retry_after = response.headers.get("retry-after")
        if retry_after is not None:
            try:
                return max(0.0, float(retry_after))
            except ValueError:
                pass
        reset_at = response.headers.get("ratelimit-reset")
        if reset_at is not None:
            try:
                return max(0.0, float(reset_at) - time.time())
            except ValueError:
                pass
        return None

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Extract GitLab's error message from a response body."""
        try:
            body = response.json()
        except ValueError:
            return response.text[:500] or response.reason_phrase
        if isinstance(body, dict):
            message = body.get("message") or body.get("error")
            if message is not None:
                return str(message)
        return str(body)[:500]

    def _raise_for_status(self, response: httpx.Response, method: str, path: str) -> None:
        if 200 <= response.status_code < 300:
            return
        message = self._error_message(response)
        request_url = str(response.request.url)
        if response.status_code == 404:
            raise NotFoundError(404, message, request_url=request_url)
        if response.status_code == 429:
            raise RateLimitError(
                429,
                message,
                retry_after=self._retry_after(response),
                request_url=request_url,
            )
        logger.error(
            "GitLab API error",
            status_code=response.status_code,
            method=method,
            path=path,
            response_body=message,
        )
        raise RemoteApiError(response.status_code, message, request_url=request_url)

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Make an HTTP request with retry logic.

        Args:
            method: HTTP method.
            path: API path relative to ``/api/v4`` or an absolute URL.
            params: Optional query parameters.
            json_data: Optional JSON body.

        Returns:
            The successful HTTP response.

        Raises:
            NotFoundError: On 404.
            RateLimitError: If 429 persists after all retries.
            RemoteApiError: On any other non-2xx response.
            TransportError: If the network fails on every attempt (POST is tried once).
        """
        last_exception: Optional[Exception] = None
        idempotent = method.upper() in self.IDEMPOTENT_METHODS
        attempts = 0

        for attempt in range(self.max_retries + 1):
            attempts = attempt + 1
            try:
                response = self.client.request(
                    method=method,
                    url=path,
                    params=params,
                    json=json_data,
                )
            except httpx.TransportError as e:
                last_exception = e
                if idempotent and attempt < self.max_retries:
                    delay = self._calculate_backoff(attempt)
                    logger.warning(
                        "Request error, retrying",
                        error=str(e),
                        attempt=attempt + 1,
                        max_retries=self.max_retries,
                        delay=delay,
                        path=path,
                    )
                    self._sleep(delay)
                    continue
                break

            if (
                response.status_code in self.RETRYABLE_STATUS_CODES
                and (idempotent or response.status_code == 429)
                and attempt < self.max_retries
            ):
                delay = self._calculate_backoff(attempt)
                if response.status_code == 429:
                    retry_after = self._retry_after(response)
                    if retry_after is not None:
                        delay = min(retry_after, self.max_delay)
                logger.warning(
                    "Retryable error from GitLab API",
                    status_code=response.status_code,
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    delay=delay,
                    path=path,
                )
                self._sleep(delay)
                continue

            self._raise_for_status(response, method, path)
            return response

        logger.error(
            "GitLab API request failed",
            path=path,
            method=method,
            attempts=attempts,
            last_error=str(last_exception),
        )
        raise TransportError(
            f"Request {method} {path} failed after {attempts} attempt(s): {last_exception}"
        ) from last_exception

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        """Decode a 2xx body, treating anything but JSON as an API error."""
        try:
            return response.json()
        except ValueError as e:
            raise RemoteApiError(
                response.status_code,
                f"Invalid JSON in response: {response.text[:200]!r}",
                request_url=str(response.request.url),
            ) from e

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._json(self.request("GET", path, params=params))

    def post(self, path: str, json_data: Optional[Dict[str, Any]] = None) -> Any:
        """POST once; timeouts and 5xx are not retried."""
        return self._json(self.request("POST", path, json_data=json_data))

    def delete(self, path: str) -> None:
        self.request("DELETE", path)

    def iter_pages(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Iterator[Dict[str, Any]]:
        """Yield every item of a paginated listing, in server order."""
        page_params: Dict[str, Any] = dict(params or {})
        page_params.setdefault("per_page", self.per_page)
        page_params.setdefault("page", 1)
        url: Optional[str] = path

        while url is not None:
            response = self.request("GET", url, params=page_params)
            items = self._json(response)
            if not isinstance(items, list):
                raise RemoteApiError(
                    response.status_code,
                    f"Expected a list from {path}, got {type(items).__name__}",
                    request_url=str(response.request.url),
                )
            yield from items

            next_page = response.headers.get("x-next-page")
            if next_page is not None:
                if not next_page.strip().isdigit():
                    break
                page_params["page"] = int(next_page)
                continue

            next_link = response.links.get("next", {}).get("url")
            if next_link:
                # Link URLs already carry the query string
                url, page_params = next_link, {}
            else:
                url = None
