"""
cdnctl - command-line client for the SwiftFederation CDN management API.

Stores named credential profiles locally, signs every request with
HMAC-SHA256 and prints the API responses.

Key Features:
    - Named access-key profiles with a default profile
    - HMAC-SHA256 request signing with timestamp and nonce headers
    - Web Acceleration service lookup and raw signed API calls
"""

__version__ = "0.1.0"

from cdnctl.config.settings import Settings, load_config

__all__ = [
    "__version__",
    "Settings",
    "load_config",
]
