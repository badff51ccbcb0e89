"""
Signed access to the provider management API.
"""

from cdnctl.api.client import (
    SERVICE_ID_PATH,
    APIError,
    ApiClient,
    ApiClientError,
    NetworkError,
    RequestBodyError,
    call_api,
)
from cdnctl.api.signer import RequestSigner, SignedRequest

__all__ = [
    "ApiClient",
    "ApiClientError",
    "APIError",
    "NetworkError",
    "RequestBodyError",
    "RequestSigner",
    "SignedRequest",
    "SERVICE_ID_PATH",
    "call_api",
]
