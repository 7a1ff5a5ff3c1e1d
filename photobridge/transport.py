import time
from typing import Callable, Optional

import requests
import structlog
from requests.adapters import HTTPAdapter

from photobridge.config import BATCH_SIZE
from photobridge.errors import RemoteRejection, TransientNetworkError

log = structlog.stdlib.get_logger()


def is_retryable_status(status_code: int) -> bool:
    return status_code >= 500 or status_code == 429


class RetryingTransport:
    """
    Sends one HTTP request with bounded exponential backoff.

    Network errors, 5xx and 429 are retried. Every other status is handed
    back to the caller as-is. The delay before retry n is 2**n * backoff_base
    seconds, so with the default base the waits are 2s, 4s, 8s, ...
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        max_retries: int = 5,
        backoff_base: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        timeout: float = 60.0,
    ):
        self.session = session or self.default_session()
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.sleep = sleep
        self.timeout = timeout

    @staticmethod
    def default_session() -> requests.Session:
        """
        Session whose connection pool fits a full chunk of concurrent uploads.
        """
        session = requests.Session()
        adapter = HTTPAdapter(pool_maxsize=BATCH_SIZE)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def delay_for(self, attempt: int) -> float:
        return (2 ** attempt) * self.backoff_base

    def send(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Returns the last response received (which may still be a failure),
        or raises TransientNetworkError if the last attempt had a network error.
        """
        kwargs.setdefault("timeout", self.timeout)
        attempt = 0

        while True:
            error = None
            response = None
            try:
                response = self.session.request(method, url, **kwargs)
            except requests.RequestException as e:
                error = e

            retry = error is not None or response is None or is_retryable_status(response.status_code)
            if not retry or attempt >= self.max_retries:
                break

            attempt += 1
            delay = self.delay_for(attempt)
            log.warning(
                "retrying_request",
                method=method,
                url=url,
                attempt=attempt,
                status=None if response is None else response.status_code,
                error=None if error is None else str(error),
                delay_seconds=delay,
            )
            self.sleep(delay)

        if response is None:
            raise TransientNetworkError(f"{method} {url} failed after {attempt + 1} attempts: {error}") from error
        return response


def raise_for_status(response: requests.Response, what: str) -> requests.Response:
    """
    Turn a failed response into the matching photobridge error.
    """
    if response.ok:
        return response
    message = f"Failed to {what}: {response.status_code} {response.reason}"
    if is_retryable_status(response.status_code):
        raise TransientNetworkError(message, status_code=response.status_code)
    raise RemoteRejection(message, status_code=response.status_code, body=response.text)
