"""Exception taxonomy for the prompt demand estimator.

- ``ValidationError``     bad caller input, raised before any I/O or cache access
- ``ProviderError`` family raised by the keyword-data client
- ``ConfigurationError``  malformed or missing configuration
"""

from __future__ import annotations


class EstimatorError(Exception):
    """Base class for all application errors."""


class ValidationError(EstimatorError):
    """Caller supplied an invalid argument."""


class ConfigurationError(EstimatorError):
    """Configuration could not be loaded or is invalid."""


class CacheError(EstimatorError):
    """Cache read or write failed."""


# ---------------------------------------------------------------------------
# Provider errors
# ---------------------------------------------------------------------------
class ProviderError(EstimatorError):
    """Keyword-data provider call failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderRateLimitError(ProviderError):
    """Provider rejected the request with HTTP 429."""


class ProviderAuthenticationError(ProviderError):
    """Provider rejected the API key."""


class ProviderConnectionError(ProviderError):
    """Provider unreachable or returned a server error."""
