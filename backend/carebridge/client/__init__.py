"""
Async HTTP client for the CareBridge API.
"""

from .api_client import CareBridgeClient, CareBridgeAPIError, TokenRefreshError

__all__ = ["CareBridgeClient", "CareBridgeAPIError", "TokenRefreshError"]
