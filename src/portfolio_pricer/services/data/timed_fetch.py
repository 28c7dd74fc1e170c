"""
Timeout- and retry-wrapped HTTP GET.

Every provider request goes through TimedFetcher.fetch(). A request is run on
a worker thread and raced against a hard deadline; transport failures, HTTP
429 and 5xx responses are retried with exponential backoff inside that
deadline. When the deadline passes the worker is abandoned, not cancelled:
the remote side may still complete the request.
"""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from typing import Any, Dict, Optional

import requests
from loguru import logger
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from portfolio_pricer.core.errors import FetchTimeout, NotFoundError, TransportError


class RetryableStatus(Exception):
    """HTTP status worth retrying (429 or 5xx)."""

    def __init__(self, status: int, url: str):
        super().__init__(f"HTTP {status} from {url}")
        self.status = status
        self.url = url


RETRYABLE_EXCEPTIONS = (requests.ConnectionError, requests.Timeout, RetryableStatus)


def _log_retry(retry_state: RetryCallState) -> None:
    url = retry_state.args[0] if retry_state.args else "?"
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.debug(f"Retrying {url} (attempt {retry_state.attempt_number} failed: {error})")


class TimedFetcher:
    """
    HTTP GET with a hard deadline and bounded exponential-backoff retry.

    Logical failures (4xx other than 429) are raised as NotFoundError and are
    never retried.
    """

    USER_AGENT = "portfolio-pricer/0.1"

    def __init__(
        self,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 0.1,
        backoff_max: float = 2.0,
        session: Optional[requests.Session] = None,
        max_workers: int = 8
    ):
        """
        Initialize fetcher.

        Args:
            timeout: Hard deadline per fetch() call, in seconds
            max_retries: Retries after the first attempt
            backoff_base: Multiplier for the exponential backoff, in seconds
            backoff_max: Upper bound for a single backoff sleep
            session: Optional pre-configured requests session
            max_workers: Worker threads available for in-flight requests
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": self.USER_AGENT})

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="timed-fetch"
        )
        self._retrying = Retrying(
            stop=stop_after_attempt(max_retries + 1),
            wait=wait_exponential(multiplier=backoff_base, max=backoff_max),
            retry=retry_if_exception_type(RETRYABLE_EXCEPTIONS),
            before_sleep=_log_retry,
            reraise=True,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self) -> None:
        """Release the session; abandoned workers are left to finish on their own."""
        self._executor.shutdown(wait=False)
        self.session.close()

    def fetch(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> requests.Response:
        """
        GET a URL within the deadline.

        Args:
            url: Absolute URL
            params: Query parameters
            headers: Extra request headers

        Returns:
            The successful (2xx/3xx) response

        Raises:
            FetchTimeout: If the deadline elapsed first
            TransportError: If every attempt failed at the transport level
            NotFoundError: If the provider rejected the request (4xx)
        """
        future = self._executor.submit(self._get_with_retry, url, params, headers)
        try:
            return future.result(timeout=self.timeout)
        except FuturesTimeout:
            raise FetchTimeout(
                f"Operation timed out after {self.timeout * 1000:.0f} ms: {url}", url=url
            ) from None
        except RetryableStatus as e:
            raise TransportError(
                f"{e} after {self.max_retries} retries", url=url
            ) from e
        except requests.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}", url=url) from e

    def _get_with_retry(
        self,
        url: str,
        params: Optional[Dict[str, Any]],
        headers: Optional[Dict[str, str]]
    ) -> requests.Response:
        # Retrying keeps per-call state, so each call gets its own copy
        return self._retrying.copy()(self._get_once, url, params, headers)

    def _get_once(
        self,
        url: str,
        params: Optional[Dict[str, Any]],
        headers: Optional[Dict[str, str]]
    ) -> requests.Response:
        response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)

        status = response.status_code
        if status == 429 or status >= 500:
            raise RetryableStatus(status, url)
        if status >= 400:
            raise NotFoundError(f"HTTP {status} from {url}")
        return response
