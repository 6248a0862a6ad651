"""
HTTP Client Configuration

Timeout and retry presets for the keyword-data provider, plus a factory
for the ``httpx.Client`` the provider client uses.
"""

import httpx
from typing import Optional


# Timeout configurations (in seconds)
class Timeouts:
    """Timeout presets for external services."""
    SERPSTAT = 30.0     # keyword-data lookups
    CONNECT = 10.0


# Retry configuration
class RetryConfig:
    """Retry settings for provider calls."""
    MAX_ATTEMPTS = 3
    BASE_DELAY = 1.0  # seconds, doubled per attempt

    # Retryable status codes
    RETRYABLE_CODES = {429, 500, 502, 503, 504}


USER_AGENT = "PromptDemandEstimator/0.1"


def build_client(
    timeout: Optional[float] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """Create a synchronous client with provider defaults.

    *transport* is passed through so tests can inject ``httpx.MockTransport``.
    """
    return httpx.Client(
        timeout=get_timeout(timeout),
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
        transport=transport,
    )


def get_timeout(seconds: Optional[float] = None) -> httpx.Timeout:
    """Get timeout configuration for the provider."""
    return httpx.Timeout(seconds or Timeouts.SERPSTAT, connect=Timeouts.CONNECT)


def is_retryable_error(status_code: int) -> bool:
    """Check if an HTTP error is retryable."""
    return status_code in RetryConfig.RETRYABLE_CODES
