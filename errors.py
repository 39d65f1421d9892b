"""
Exception types shared by repositories and services.
"""

from typing import Optional


class CarteraError(Exception):
    """Base class for application errors."""


class ProviderError(CarteraError):
    """An external quote/rate provider could not deliver data."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider} API error: {message}")


class RateLimitedError(ProviderError):
    """The provider answered with a rate-limit signal (HTTP 429 or marker text)."""


class ConflictError(CarteraError):
    """A store integrity rule was violated (duplicate key, restricted delete)."""


class NotFoundError(CarteraError):
    """The requested row does not exist or is not visible to the caller."""


class ProvidersExhaustedError(ProviderError):
    """Every provider in a fallback chain failed."""

    def __init__(self, provider: str, failures):
        self.provider = provider
        self.status_code = None
        self.failures = list(failures)
        Exception.__init__(self, "; ".join(str(failure) for failure in self.failures))
