"""Sanity webhook signature verification.

Sanity signs webhook deliveries with a header of the form::

    sanity-webhook-signature: t=<timestampMillis>,v1=<signature>

where the signature is the unpadded base64url HMAC-SHA256 digest of
``<timestamp>.<raw body>`` keyed by the webhook secret.

A well-formed header whose signature does not match yields ``False``. Only a
malformed header or a timestamp older than MINIMUM_TIMESTAMP raises
InvalidSignatureError.
"""

import base64
import hashlib
import hmac
import io
import logging
import re
from typing import Tuple, Union

from .errors import InvalidSignatureError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER_NAME = "sanity-webhook-signature"

# Sanity didn't send signed payloads prior to 2021 (2021-01-01T00:00:00.000Z)
MINIMUM_TIMESTAMP = 1609459200000

_SIGNATURE_HEADER_RE = re.compile(r"^t=(\d+)[, ]+v1=([^, ]+)$", re.ASCII)


def _as_bytes(payload: Union[str, bytes]) -> bytes:
    return bytes(payload) if isinstance(payload, (bytes, bytearray)) else payload.encode("utf-8")


def generate_signature(payload: Union[str, bytes], timestamp: int, secret: str) -> str:
    """Compute the base64url (unpadded) HMAC-SHA256 signature of a payload."""
    message = f"{timestamp}.".encode("utf-8") + _as_bytes(payload)
    digest = hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def encode_signature_header(payload: Union[str, bytes], timestamp: int, secret: str) -> str:
    return f"t={timestamp},v1={generate_signature(payload, timestamp, secret)}"


def decode_signature_header(header: str) -> Tuple[str, int]:
    """Split a signature header into ``(signature, timestamp)``.

    Raises:
        InvalidSignatureError: If the header is not ``t=<digits>,v1=<sig>``.
    """
    match = _SIGNATURE_HEADER_RE.match((header or "").strip())
    if not match:
        raise InvalidSignatureError("invalid signature")
    return match.group(2), int(match.group(1))


def is_valid_signature(payload: Union[str, bytes], header: str, webhook_secret: str) -> bool:
    """Check a signature header against a raw payload.

    Returns:
        True if the signature matches, False if it does not.

    Raises:
        InvalidSignatureError: If the header is malformed or its timestamp
            predates MINIMUM_TIMESTAMP.
    """
    signature, timestamp = decode_signature_header(header)
    if timestamp < MINIMUM_TIMESTAMP:
        raise InvalidSignatureError(
            "invalid signature timestamp, must be a unix timestamp with millisecond precision"
        )

    expected = generate_signature(payload, timestamp, webhook_secret)
    return hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8"))


def is_valid_request(request, webhook_secret: str) -> bool:
    """Verify the signature of an inbound werkzeug/Flask request.

    The body is read in full and a fresh stream with the same bytes is put
    back into the WSGI environ, so handlers further down can still read it.

    Raises:
        InvalidSignatureError: If the signature header is malformed or too old.
    """
    signature = request.headers.get(SIGNATURE_HEADER_NAME, "")
    body = request.get_data(cache=True)
    request.environ["wsgi.input"] = io.BytesIO(body)
    request.environ["CONTENT_LENGTH"] = str(len(body))

    valid = is_valid_signature(body, signature, webhook_secret)
    if not valid:
        logger.warning("Webhook signature mismatch for %s %s", request.method, request.path)
    return valid
