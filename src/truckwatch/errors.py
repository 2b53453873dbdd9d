"""Error taxonomy shared by the telemetry and mapping provider clients."""

from __future__ import annotations

from typing import Sequence

import httpx


class TrackingError(Exception):
    """Base class for provider and orchestration failures."""

    def __init__(self, message: str, *, provider: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class ConfigurationError(TrackingError):
    """Required credentials or settings are missing."""


class AuthenticationError(TrackingError):
    """Credentials were rejected by the provider. Never retried."""


class RateLimitedError(TrackingError):
    """Provider is throttling us. Callers may retry later."""


class NotFoundError(TrackingError):
    """Geocode or route lookup yielded no result."""


class TransportError(TrackingError):
    """Network failure, timeout, or an unexpected provider response."""


class ProviderTimeoutError(TransportError):
    """Provider did not answer within the caller-supplied timeout."""


class ProviderHTTPError(TransportError):
    """Provider answered with a non-success status not covered by another error."""


class ExhaustedError(TrackingError):
    """Every fetch strategy failed for this cycle."""

    def __init__(self, message: str, failures: Sequence[tuple[str, str]] = ()) -> None:
        super().__init__(message)
        self.failures = list(failures)


def raise_for_provider_status(response: httpx.Response, provider: str) -> None:
    """Translate a non-success HTTP response into the error taxonomy."""
    status_code = response.status_code
    if response.is_success:
        return
    if status_code == 401:
        raise AuthenticationError(
            f"Invalid {provider} credentials. Check the configured API key.",
            provider=provider,
            status_code=status_code,
        )
    if status_code == 403:
        raise AuthenticationError(
            f"Access to {provider} forbidden. Verify the account permissions.",
            provider=provider,
            status_code=status_code,
        )
    if status_code == 429:
        raise RateLimitedError(
            f"{provider} rate limit exceeded. Please try again later.",
            provider=provider,
            status_code=status_code,
        )
    raise ProviderHTTPError(
        f"{provider} request failed: HTTP {status_code} {response.reason_phrase}",
        provider=provider,
        status_code=status_code,
    )


def wrap_transport_error(exc: httpx.HTTPError, provider: str) -> TransportError:
    """Map an httpx transport exception onto TransportError or ProviderTimeoutError."""
    if isinstance(exc, httpx.TimeoutException):
        return ProviderTimeoutError(f"{provider} request timed out: {exc}", provider=provider)
    return TransportError(f"Failed to reach {provider}: {exc}", provider=provider)
