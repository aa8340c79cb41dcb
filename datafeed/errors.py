"""
Exceptions raised by the datafeed.

- DatafeedError (base)
  - ProviderError: transport failures, non-2xx responses, unexpected payloads
    - SymbolNotFoundError: ticker details returned nothing for a symbol
  - UnsupportedResolutionError: resolution token outside the mapping table
"""

from __future__ import annotations

from typing import Optional


class DatafeedError(Exception):
    """Base exception for all datafeed errors."""


class ProviderError(DatafeedError):
    """Raised when a provider REST call fails or returns an unusable payload."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class SymbolNotFoundError(ProviderError):
    """Raised when the provider has no details for the requested symbol."""

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(f"Unknown symbol '{symbol}'", status_code=404)


class UnsupportedResolutionError(DatafeedError, ValueError):
    """Raised for resolution strings the provider cannot be asked for."""

    def __init__(self, resolution: str) -> None:
        self.resolution = resolution
        super().__init__(f"Unsupported resolution '{resolution}'")
