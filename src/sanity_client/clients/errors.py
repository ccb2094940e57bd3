"""Error types raised by the Sanity client.

Every error derives from SanityError so callers can catch the whole family,
but the subclasses let them tell a bad request built on this side apart from
a failure reported by the API or the network.
"""

from typing import Optional

MAX_BODY_PREVIEW = 500


class SanityError(Exception):
    """Base class for all client errors."""


class InvalidRequestError(SanityError):
    """Raised when a request fails validation before anything is sent."""

    def __init__(self, description: str):
        super().__init__(f"invalid request: {description}")
        self.description = description


class MarshalError(SanityError):
    """Raised when caller-supplied data cannot be encoded as JSON."""


class DecodeError(SanityError):
    """Raised when a successful response does not carry valid JSON."""


class TransportError(SanityError):
    """Raised when no response was received at all (connection failure)."""

    def __init__(self, message: str, method: Optional[str] = None, url: Optional[str] = None):
        super().__init__(message)
        self.method = method
        self.url = url


class RequestCancelledError(TransportError):
    """Raised when the caller cancelled the call or its deadline passed."""


class InvalidSignatureError(SanityError):
    """Raised when a webhook signature header is malformed or too old."""


class RequestError(SanityError):
    """Raised for API requests that fail with a non-successful HTTP status.

    Attributes are read-only once the error is constructed.
    """

    def __init__(self, method: str, url: str, status_code: int, body: bytes = b""):
        self._method = method
        self._url = url
        self._status_code = status_code
        self._body = bytes(body or b"")
        super().__init__(self._format())

    @property
    def method(self) -> str:
        return self._method

    @property
    def url(self) -> str:
        return self._url

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def body(self) -> bytes:
        return self._body

    def _format(self) -> str:
        body = self._body[:MAX_BODY_PREVIEW].decode("utf-8", errors="replace")
        if len(self._body) > MAX_BODY_PREVIEW:
            body = f"{body} [... and {len(self._body) - MAX_BODY_PREVIEW} more bytes]"

        msg = f"HTTP request [{self._method} {self._url}] failed with status {self._status_code}"
        if body:
            msg += ": " + body
        return msg
