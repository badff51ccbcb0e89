"""
Signed HTTP client for the provider management API.

Each call resolves a credential profile, serializes the body to JSON, signs
the request and sends it once. There is no retry or backoff: a failed call
raises and the caller decides what to do.

Headers sent with every request:
    Content-Type:  application/json; charset=utf-8
    Authorization: HMAC-SHA256 <access-key>:<signature>
    X-SFD-Date:    signing timestamp (YYYYMMDDTHHMMSSZ)
    X-SFD-Nonce:   5-digit nonce
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

import requests

from cdnctl.api.signer import RequestSigner
from cdnctl.config.settings import DEFAULT_TIMEOUT_SECONDS

if TYPE_CHECKING:
    from cdnctl.config.profiles import ProfileStore

logger = logging.getLogger(__name__)

CONTENT_TYPE = "application/json; charset=utf-8"
DATE_HEADER = "X-SFD-Date"
NONCE_HEADER = "X-SFD-Nonce"

# Web Acceleration service lookup
SERVICE_ID_PATH = "/v1.1/service_id"


# -----------------------------------------------------------------------------
# Error Classes
# -----------------------------------------------------------------------------


class ApiClientError(Exception):
    """Base exception for API call failures."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NetworkError(ApiClientError):
    """
    Raised when the request could not be completed.

    This includes connection errors, DNS failures and client-side timeouts.
    """

    pass


class RequestBodyError(ApiClientError):
    """Raised when the request body cannot be serialized to JSON."""

    pass


class APIError(ApiClientError):
    """
    Raised when the API answers with a non-2xx status.

    Attributes:
        status_code: HTTP status code.
        reason: HTTP status text.
        body: Raw response body, kept for diagnostics.
    """

    def __init__(self, status_code: int, reason: str, body: bytes) -> None:
        self.status_code = status_code
        self.reason = reason
        self.body = body
        text = body.decode("utf-8", errors="replace")
        super().__init__(f"HTTP request failed: {status_code} {reason} - {text}")


# -----------------------------------------------------------------------------
# Client
# -----------------------------------------------------------------------------


def serialize_body(body: Any) -> str:
    """
    Serialize a request body to compact JSON text; None becomes "{}".

    Raises:
        RequestBodyError: If the body is not JSON-serializable or holds
                          NaN or infinite floats.
    """
    if body is None:
        return "{}"
    try:
        return json.dumps(
            body, separators=(",", ":"), ensure_ascii=False, allow_nan=False
        )
    except (TypeError, ValueError) as e:
        raise RequestBodyError(f"Failed to marshal request body: {e}") from e


class ApiClient:
    """
    Sends signed requests on behalf of a stored profile.

    Example:
        store = ProfileStore(path)
        client = ApiClient(store, timeout=10)
        data = client.call(
            "POST",
            "https://cdn-api.swiftfederation.com",
            "/v1.1/service_id",
            {"domain": "example.com"},
        )

    Attributes:
        profile_store: Store used to resolve credentials before each call.
        signer: Request signer.
        timeout: Client-side timeout in seconds for a single call.
    """

    def __init__(
        self,
        profile_store: ProfileStore,
        signer: RequestSigner | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            profile_store: Store used to resolve credentials.
            signer: Request signer. Defaults to one using the system clock
                    and a random nonce.
            timeout: Client-side timeout in seconds.
            session: Optional requests session to send through.
        """
        self.profile_store = profile_store
        self.signer = signer or RequestSigner()
        self.timeout = timeout
        self._session = session

    def _get_session(self) -> requests.Session:
        """Get or create the requests session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def call(
        self,
        method: str,
        base_url: str,
        path: str,
        body: Any = None,
        profile_name: str = "",
    ) -> bytes:
        """
        Make a signed API request.

        Args:
            method: HTTP method.
            base_url: Scheme and host of the API, e.g. https://cdn-api.example.com.
            path: URI path; this is what gets signed.
            body: JSON-serializable request body, or None for "{}".
            profile_name: Profile to sign with, or "" for the default.

        Returns:
            Raw response body, unparsed.

        Raises:
            ProfileError: If credentials cannot be resolved. No request is sent.
            RequestBodyError: If ``body`` cannot be serialized. No request is sent.
            NetworkError: On connection failure or timeout.
            APIError: If the response status is outside 200-299.
        """
        profile = self.profile_store.resolve(profile_name)
        logger.debug(f"Using profile '{profile.name}'")

        body_json = serialize_body(body)
        signed = self.signer.sign(
            method, path, body_json, profile.access_key, profile.access_key_secret
        )

        url = base_url.rstrip("/") + path
        headers = {
            "Content-Type": CONTENT_TYPE,
            "Authorization": signed.authorization,
            DATE_HEADER: signed.timestamp,
            NONCE_HEADER: signed.nonce,
        }

        session = self._get_session()
        start_time = time.time()

        try:
            response = session.request(
                signed.method,
                url,
                data=body_json.encode("utf-8"),
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise NetworkError(
                f"Request to {url} timed out after {self.timeout}s: {e}"
            ) from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Failed to send HTTP request to {url}: {e}") from e

        duration_ms = (time.time() - start_time) * 1000
        self._log_api_call(signed.method, path, response.status_code, duration_ms)

        if not 200 <= response.status_code < 300:
            raise APIError(response.status_code, response.reason or "", response.content)

        return response.content

    def _log_api_call(
        self,
        method: str,
        endpoint: str,
        status_code: int | None = None,
        duration_ms: float | None = None,
    ) -> None:
        """
        Log an API call for audit trail.

        Args:
            method: HTTP method (GET, POST, etc.).
            endpoint: API endpoint path.
            status_code: Response status code (if available).
            duration_ms: Request duration in milliseconds.
        """
        msg = f"API call: {method} {endpoint}"
        if status_code is not None:
            msg += f" -> {status_code}"
        if duration_ms is not None:
            msg += f" ({duration_ms:.0f}ms)"
        logger.info(msg)


def call_api(
    client: ApiClient,
    method: str,
    base_url: str,
    path: str,
    body: Any = None,
    profile_name: str = "",
) -> bytes:
    """Make a signed API request; see ApiClient.call."""
    return client.call(method, base_url, path, body, profile_name)
