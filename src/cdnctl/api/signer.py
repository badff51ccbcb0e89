"""
HMAC-SHA256 request signing for the provider API.

Every request carries an Authorization header computed over a canonical
signing string:

    METHOD
    /uri/path
    20240101T000000Z        (UTC timestamp, also sent as X-SFD-Date)
    12345                   (5-digit nonce, also sent as X-SFD-Nonce)
    access-key
    {"request":"body"}

joined by "\\n". The field order is part of the wire contract with the API.
The signature is the lowercase hex HMAC-SHA256 of that string keyed by the
access key secret, and the header value is
``HMAC-SHA256 <access-key>:<signature>``.

The clock and nonce source are injectable so tests can sign
deterministically.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

logger = logging.getLogger(__name__)

AUTH_SCHEME = "HMAC-SHA256"
TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"

NONCE_MIN = 10000
NONCE_MAX = 99999


def utc_now() -> datetime:
    """Default clock: the current UTC instant."""
    return datetime.now(UTC)


def random_nonce() -> str:
    """Default nonce source: a random 5-digit number in 10000..99999."""
    return str(NONCE_MIN + secrets.randbelow(NONCE_MAX - NONCE_MIN + 1))


def format_timestamp(instant: datetime) -> str:
    """Format an instant as compact ISO-8601 UTC (YYYYMMDDTHHMMSSZ)."""
    if instant.tzinfo is not None:
        instant = instant.astimezone(UTC)
    return instant.strftime(TIMESTAMP_FORMAT)


def build_signing_string(
    method: str,
    uri: str,
    timestamp: str,
    nonce: str,
    access_key: str,
    body_json: str,
) -> str:
    """Build the canonical newline-joined string the signature covers."""
    return "\n".join([method.upper(), uri, timestamp, nonce, access_key, body_json])


def compute_signature(signing_string: str, access_key_secret: str) -> str:
    """Return the lowercase hex HMAC-SHA256 of ``signing_string``."""
    return hmac.new(
        access_key_secret.encode("utf-8"),
        signing_string.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


@dataclass(frozen=True)
class SignedRequest:
    """
    Signing result for a single outbound request.

    Built immediately before a call and discarded afterwards.

    Attributes:
        method: Uppercase HTTP method.
        uri: URI path that was signed.
        body: Request body JSON text that was signed.
        timestamp: Signing time, sent as the date header.
        nonce: Random nonce, sent as the nonce header.
        access_key: Access key of the signing profile.
        signature: Hex HMAC-SHA256 signature.
    """

    method: str
    uri: str
    body: str
    timestamp: str
    nonce: str
    access_key: str
    signature: str

    @property
    def authorization(self) -> str:
        """Authorization header value."""
        return f"{AUTH_SCHEME} {self.access_key}:{self.signature}"


class RequestSigner:
    """
    Signs requests with the provider's HMAC-SHA256 scheme.

    Example:
        signer = RequestSigner(
            clock=lambda: datetime(2024, 1, 1, tzinfo=UTC),
            nonce_source=lambda: "12345",
        )
        signed = signer.sign("POST", "/v1.1/service_id", "{}", "AK1", "SK1")
        headers = {"Authorization": signed.authorization}
    """

    def __init__(
        self,
        clock: Callable[[], datetime] | None = None,
        nonce_source: Callable[[], str] | None = None,
    ) -> None:
        """
        Initialize the signer.

        Args:
            clock: Returns the current UTC instant. Defaults to utc_now.
            nonce_source: Returns a 5-digit nonce string. Defaults to random_nonce.
        """
        self._clock = clock or utc_now
        self._nonce_source = nonce_source or random_nonce

    def sign(
        self,
        method: str,
        uri: str,
        body_json: str,
        access_key: str,
        access_key_secret: str,
    ) -> SignedRequest:
        """
        Sign a request.

        Args:
            method: HTTP method (case-insensitive).
            uri: URI path, without host.
            body_json: Exact JSON text that will be sent as the body.
            access_key: Access key of the signing profile.
            access_key_secret: Secret used as the HMAC key.

        Returns:
            SignedRequest carrying the signature, timestamp and nonce.
        """
        timestamp = format_timestamp(self._clock())
        nonce = self._nonce_source()
        method = method.upper()

        signing_string = build_signing_string(
            method, uri, timestamp, nonce, access_key, body_json
        )
        signature = compute_signature(signing_string, access_key_secret)
        logger.debug(f"Signed {method} {uri} at {timestamp} (nonce {nonce})")

        return SignedRequest(
            method=method,
            uri=uri,
            body=body_json,
            timestamp=timestamp,
            nonce=nonce,
            access_key=access_key,
            signature=signature,
        )
