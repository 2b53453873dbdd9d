"""Request dependencies and error translation shared by the routers."""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status

from ..errors import (
    AuthenticationError,
    ConfigurationError,
    ExhaustedError,
    NotFoundError,
    ProviderTimeoutError,
    RateLimitedError,
    TrackingError,
    TransportError,
)
from ..services.tracking import TrackingService

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[TrackingError], int], ...] = (
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (RateLimitedError, status.HTTP_429_TOO_MANY_REQUESTS),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ProviderTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (TransportError, status.HTTP_502_BAD_GATEWAY),
    (ExhaustedError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ConfigurationError, status.HTTP_400_BAD_REQUEST),
)


def get_tracking_service(request: Request) -> TrackingService:
    return request.app.state.tracking


def to_http_error(exc: TrackingError) -> HTTPException:
    """Translate a provider error into the matching HTTP status."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    logger.error(f"Unmapped tracking error: {exc!r}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
