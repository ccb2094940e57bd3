import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_never,
    wait_exponential,
    wait_random_exponential,
)

from .errors import DecodeError, RequestCancelledError, RequestError, TransportError
from .request import Request

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30

RETRIABLE_METHODS = frozenset({"GET", "HEAD", "DELETE", "OPTIONS"})
RETRIABLE_STATUS_CODES = frozenset({408, 503, 504})


def is_method_retriable(method: str) -> bool:
    return method.upper() in RETRIABLE_METHODS


def is_status_code_retriable(status: int) -> bool:
    return status in RETRIABLE_STATUS_CODES


class _RetriableResponse(Exception):
    def __init__(self, error: RequestError):
        super().__init__(str(error))
        self.error = error


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff configuration shared by every call of a client.

    Only the configuration is shared: each call builds its own Retrying, so
    attempt counts never carry over from one call to the next. With
    ``max_attempts`` unset a call retries until it succeeds, hits a terminal
    status, or is cancelled.
    """

    min_wait: float = 0.1
    max_wait: float = 10.0
    factor: float = 2.0
    jitter: bool = True
    max_attempts: Optional[int] = None

    def wait_strategy(self):
        if self.jitter:
            return wait_random_exponential(
                multiplier=self.min_wait, max=self.max_wait, exp_base=self.factor, min=self.min_wait
            )
        return wait_exponential(
            multiplier=self.min_wait, max=self.max_wait, exp_base=self.factor, min=self.min_wait
        )

    def retrying(
        self,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
        before_sleep: Optional[Callable[[RetryCallState], None]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> Retrying:
        stop = stop_after_attempt(self.max_attempts) if self.max_attempts else stop_never

        def _cancelled(retry_state: RetryCallState) -> bool:
            return _is_cancelled(cancel, deadline)

        def _sleep(seconds: float) -> None:
            if deadline is not None:
                seconds = max(0.0, min(seconds, deadline - time.monotonic()))
            if cancel is not None:
                cancel.wait(seconds)
            elif sleep is not None:
                sleep(seconds)
            else:
                time.sleep(seconds)

        return Retrying(
            reraise=True,
            retry=retry_if_exception_type(_RetriableResponse),
            wait=self.wait_strategy(),
            stop=stop | _cancelled,
            sleep=_sleep,
            before_sleep=before_sleep,
        )


def _is_cancelled(cancel: Optional[threading.Event], deadline: Optional[float]) -> bool:
    if cancel is not None and cancel.is_set():
        return True
    return deadline is not None and time.monotonic() >= deadline


class HttpClient:
    """Executes built requests with bounded automatic retry.

    Only idempotent methods answering 408, 503 or 504 are retried. Any other
    non-2xx status becomes a RequestError straight away, and a connection
    failure with no response becomes a TransportError.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = DEFAULT_TIMEOUT,
        on_error_will_retry: Optional[Callable[[Exception], None]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.session = session if session is not None else requests.Session()
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self.on_error_will_retry = on_error_will_retry
        self._sleep = sleep

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        error = exc.error if isinstance(exc, _RetriableResponse) else exc
        logger.warning(
            "Retrying after attempt %d in %.2fs: %s",
            retry_state.attempt_number,
            retry_state.next_action.sleep if retry_state.next_action else 0.0,
            error,
        )
        if self.on_error_will_retry is not None:
            self.on_error_will_retry(error)

    def execute(
        self,
        request: Request,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Send a request, retrying where allowed, and return the decoded JSON.

        Args:
            request: The built request. It is rendered afresh on every attempt.
            cancel: Optional event; once set no further attempt or sleep happens.
            deadline: Optional ``time.monotonic()`` value acting like ``cancel``.

        Raises:
            MarshalError: If the request body could not be marshaled.
            RequestError: If the API answered with a terminal non-2xx status.
            TransportError: If no response was received.
            RequestCancelledError: If cancelled or past the deadline.
            DecodeError: If a 2xx response is not a JSON object.
        """
        retrying = self.retry_policy.retrying(
            cancel=cancel, deadline=deadline, before_sleep=self._before_sleep, sleep=self._sleep
        )
        try:
            for attempt in retrying:
                with attempt:
                    return self._attempt(request, cancel, deadline)
        except _RetriableResponse as e:
            if _is_cancelled(cancel, deadline):
                raise RequestCancelledError(
                    f"[{e.error.method} {e.error.url}] cancelled while retrying: {e.error}",
                    method=e.error.method,
                    url=e.error.url,
                ) from e.error
            raise e.error from None

    def _attempt(
        self,
        request: Request,
        cancel: Optional[threading.Event],
        deadline: Optional[float],
    ) -> Dict[str, Any]:
        kwargs = request.http_request()
        method, url = kwargs["method"], kwargs["url"]

        if _is_cancelled(cancel, deadline):
            raise RequestCancelledError(f"[{method} {url}] cancelled", method=method, url=url)

        logger.debug("Making %s request to %s", method, url)

        try:
            response = self.session.request(timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error("Request failed: %s %s: %s", method, url, e)
            raise TransportError(f"[{method} {url}] failed: {e}", method=method, url=url) from e

        if 200 <= response.status_code <= 299:
            return _decode(response, method, url)

        error = RequestError(method, url, response.status_code, response.content or b"")
        if is_method_retriable(method) and is_status_code_retriable(response.status_code):
            raise _RetriableResponse(error)

        logger.error(
            "Request failed: %s %s returned %d: %s",
            method,
            url,
            response.status_code,
            response.text[:200],
        )
        raise error


def _decode(response: requests.Response, method: str, url: str) -> Dict[str, Any]:
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError as e:
        raise DecodeError(f"[{method} {url}] response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise DecodeError(f"[{method} {url}] expected a JSON object, got {type(data).__name__}")
    return data
