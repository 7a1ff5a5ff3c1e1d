import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from photobridge.errors import CredentialAcquisitionError

log = structlog.stdlib.get_logger()


@dataclass(frozen=True)
class Credential:
    token: str
    account_id: Optional[int] = None


class CredentialCache:
    """
    Memoizes one credential per instance and coalesces concurrent acquisitions.

    States: empty, in flight (a shared Future), cached. The first caller to
    find the cache empty runs the acquirer; every caller arriving while it
    runs waits on the same Future. A failure is delivered to all of them and
    leaves the cache empty, so the next call starts over.
    """

    def __init__(
        self,
        acquire: Optional[Callable[[], Credential]] = None,
        credential: Optional[Credential] = None,
        name: str = "credential",
    ):
        if acquire is None and credential is None:
            raise ValueError("Either an acquirer or an explicit credential is required")
        self._acquire = acquire
        self._credential = credential
        self._in_flight: Optional[Future] = None
        self._lock = threading.Lock()
        self.name = name

    @property
    def cached(self) -> bool:
        return self._credential is not None

    def get_credential(self) -> Credential:
        with self._lock:
            if self._credential is not None:
                return self._credential
            future = self._in_flight
            owner = future is None
            if owner:
                future = self._in_flight = Future()

        if not owner:
            return future.result()

        log.info("acquiring_credential", name=self.name)
        try:
            credential = self._acquire()
        except BaseException as e:
            if isinstance(e, CredentialAcquisitionError) or not isinstance(e, Exception):
                # interrupts reach waiters unchanged so nobody blocks on the Future
                error = e
            else:
                error = CredentialAcquisitionError(f"Could not acquire {self.name}: {e}")
                error.__cause__ = e
            log.error("credential_acquisition_failed", name=self.name, error=str(error) or type(error).__name__)
            with self._lock:
                self._in_flight = None
            future.set_exception(error)
            raise error

        with self._lock:
            self._credential = credential
            self._in_flight = None
        future.set_result(credential)
        return credential
