# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///
"""Raw HTTP transport for the ScoreSaber API (scoresaber.com/api).

One :meth:`Transport.fetch` call is one GET request.  The body is returned
as text exactly as received; parsing happens in the layers above so the
disk cache can store bodies byte-for-byte.

There is no retry loop here.  Failures surface as
:class:`TransportError` subclasses and the caller decides what to do.  A
fixed delay can be configured to space consecutive calls out.
"""

from __future__ import annotations

import logging
import time
import urllib.error
import urllib.parse
import urllib.request

from data.query import Query

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BASE_URL = "https://scoresaber.com/api"
DEFAULT_TIMEOUT = 10  # seconds
USER_AGENT = "ouroboros/0.4.0"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class TransportError(Exception):
    """Base exception for failed round trips to the remote service."""

    def __init__(self, message: str, status_code: int | None = None,
                 url: str | None = None):
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class TransportNotFoundError(TransportError):
    """Raised when the remote resource does not exist (404)."""


class TransportRateLimitError(TransportError):
    """Raised on 429.  ``retry_after`` holds the server's hint in seconds."""

    def __init__(self, message: str, status_code: int | None = 429,
                 url: str | None = None, retry_after: float | None = None):
        self.retry_after = retry_after
        super().__init__(message, status_code=status_code, url=url)


class TransportServiceUnavailableError(TransportError):
    """Raised on 5xx responses."""


class TransportConnectionError(TransportError):
    """Raised when a connection to the API cannot be established."""


class TransportTimeoutError(TransportError):
    """Raised when a request to the API times out."""


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class Transport:
    """Performs single GET requests against the ScoreSaber API.

    Args:
        base_url: API root, without a trailing slash.
        timeout: Socket timeout per request, in seconds.
        request_delay: Seconds to sleep after every call, successful or not.
    """

    def __init__(self, base_url: str = BASE_URL,
                 timeout: float = DEFAULT_TIMEOUT,
                 request_delay: float = 0.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.request_delay = request_delay
        self.call_count = 0

    def build_url(self, query: Query) -> str:
        """Return the absolute URL for *query*."""
        url = f"{self.base_url}/{query.path}"
        if query.params:
            url = f"{url}?{urllib.parse.urlencode(query.params)}"
        return url

    def fetch(self, query: Query) -> str:
        """Perform one round trip and return the response body as text.

        Raises:
            TransportNotFoundError: On 404.
            TransportRateLimitError: On 429.
            TransportServiceUnavailableError: On any 5xx.
            TransportTimeoutError: If the request times out.
            TransportConnectionError: If the server cannot be reached.
            TransportError: For any other HTTP error status.
        """
        url = self.build_url(query)
        self.call_count += 1
        logger.debug("GET %s", url)
        try:
            req = urllib.request.Request(url)
            req.add_header("Accept", "application/json")
            req.add_header("User-Agent", USER_AGENT)
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return resp.read().decode("utf-8")

        except urllib.error.HTTPError as exc:
            if exc.code == 404:
                raise TransportNotFoundError(
                    f"Resource not found: {url}", status_code=404, url=url,
                ) from exc
            if exc.code == 429:
                headers = exc.headers or {}
                retry_after = _parse_retry_after(headers.get("Retry-After"))
                logger.warning("Rate limited by %s (retry after %s s)",
                               url, retry_after)
                raise TransportRateLimitError(
                    f"Rate limited: {url}", url=url, retry_after=retry_after,
                ) from exc
            if exc.code >= 500:
                raise TransportServiceUnavailableError(
                    f"Server error ({exc.code}) from {url}",
                    status_code=exc.code, url=url,
                ) from exc
            raise TransportError(
                f"HTTP {exc.code} from {url}", status_code=exc.code, url=url,
            ) from exc

        except TimeoutError as exc:
            raise TransportTimeoutError(
                f"Request timed out: {url}", url=url,
            ) from exc

        except urllib.error.URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                raise TransportTimeoutError(
                    f"Request timed out: {url}", url=url,
                ) from exc
            raise TransportConnectionError(
                f"Connection failed: {exc.reason}", url=url,
            ) from exc

        except OSError as exc:
            raise TransportConnectionError(
                f"Connection error: {exc}", url=url,
            ) from exc

        finally:
            if self.request_delay > 0:
                time.sleep(self.request_delay)
