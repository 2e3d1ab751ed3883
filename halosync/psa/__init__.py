"""HaloPSA API client, response cache and resource services."""

from halosync.psa.cache import CacheTTL, ResponseCache
from halosync.psa.client import PSAClient
from halosync.psa.errors import (
    APIError,
    AuthenticationFailure,
    ConfigurationError,
    HaloError,
    NotFoundError,
    RateLimitError,
    TransientError,
    WriteError,
)

__all__ = [
    "APIError",
    "AuthenticationFailure",
    "CacheTTL",
    "ConfigurationError",
    "HaloError",
    "NotFoundError",
    "PSAClient",
    "RateLimitError",
    "ResponseCache",
    "TransientError",
    "WriteError",
]
