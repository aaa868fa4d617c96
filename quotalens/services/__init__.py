"""Services layer for QuotaLens."""

from .api_client import APIError, ApiCallResult, ManagementAPIClient
from .quota_registry import PROVIDER_REGISTRY, QuotaProviderConfig, get_provider_config

__all__ = [
    "APIError",
    "ApiCallResult",
    "ManagementAPIClient",
    "PROVIDER_REGISTRY",
    "QuotaProviderConfig",
    "get_provider_config",
]
