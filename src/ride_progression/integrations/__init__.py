"""Clients for external services: intervals.icu import and Google Drive sync."""

from .base import (
    AuthenticationError,
    IntegrationClient,
    IntegrationError,
    RateLimitError,
    RequestTimeoutError,
)
from .drive import DriveClient, TokenProvider
from .intervals import IntervalsClient, activity_eftp, normalize_activity

__all__ = [
    "AuthenticationError",
    "DriveClient",
    "IntegrationClient",
    "IntegrationError",
    "IntervalsClient",
    "RateLimitError",
    "RequestTimeoutError",
    "TokenProvider",
    "activity_eftp",
    "normalize_activity",
]
