"""HTTP adapter for the marketplace API (httpx)."""

from .api_client import ApiClient
from .error_mapping import CREDENTIAL_EXCHANGE_PATHS, map_http_error

__all__ = ["ApiClient", "map_http_error", "CREDENTIAL_EXCHANGE_PATHS"]
