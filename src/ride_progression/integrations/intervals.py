"""
intervals.icu integration for ride import.

Implements:
- Activity listing since a start date
- Per-activity detail fetch (power metrics live only on the detail record)
- Bounded retry with backoff on rate limits
- Mapping of the many intervals.icu field spellings onto ImportCandidate
"""

import asyncio
import base64
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..models.workouts import ImportCandidate
from .base import (
    AuthenticationError,
    IntegrationClient,
    IntegrationError,
    RateLimitError,
    error_message,
    get_retry_after,
)

logger = logging.getLogger(__name__)

SOURCE_NAME = "intervals.icu"

# Field spellings seen across intervals.icu responses, in preference order
POWER_FIELDS = ("icu_np", "normalized_power", "icu_weighted_avg_watts", "average_watts", "icu_average_watts", "avg_watts")
LOAD_FIELDS = ("icu_training_load", "training_load", "tss")
DURATION_FIELDS = ("moving_time", "elapsed_time")
EFTP_FIELDS = ("icu_eftp", "eftp")


def _first_number(data: Dict[str, Any], fields) -> Optional[float]:
    for name in fields:
        value = data.get(name)
        if value in (None, "", 0):
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return None


def normalize_activity(activity: Dict[str, Any]) -> ImportCandidate:
    """
    Map an intervals.icu activity onto the import candidate shape.

    This is the only place that knows intervals.icu field names.
    """
    start = activity.get("start_date_local") or activity.get("start_date") or ""
    duration_sec = _first_number(activity, DURATION_FIELDS) or 0

    return ImportCandidate(
        date=str(start).split("T")[0] if start else None,
        normalized_power=_first_number(activity, POWER_FIELDS),
        duration=round(duration_sec / 60),
        tss=_first_number(activity, LOAD_FIELDS),
        name=activity.get("name") or "Ride",
        source=SOURCE_NAME,
        external_id=str(activity["id"]) if activity.get("id") is not None else None,
    )


def activity_eftp(activity: Dict[str, Any]) -> Optional[float]:
    """intervals.icu's estimated FTP for the activity, if reported."""
    return _first_number(activity, EFTP_FIELDS)


class IntervalsClient(IntegrationClient):
    """
    Client for the intervals.icu API v1.

    Authenticates with HTTP Basic using the literal user ``API_KEY`` and the
    athlete's API key as password.

    Usage:
        async with IntervalsClient("i12345", api_key) as client:
            summaries = await client.list_activities(oldest="2024-12-29")
            detail = await client.get_activity(summaries[0]["id"])
    """

    provider = "intervals.icu"
    base_url = "https://intervals.icu/api/v1"

    def __init__(
        self,
        athlete_id: str,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        max_backoff: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not athlete_id or not api_key:
            raise AuthenticationError("Athlete ID and API key are required", self.provider)
        super().__init__(timeout=timeout, transport=transport)
        self.athlete_id = athlete_id
        self._api_key = api_key
        self.max_retries = max(1, max_retries)
        self.max_backoff = max_backoff
        if base_url:
            self.base_url = base_url.rstrip("/")

    def get_auth_headers(self) -> Dict[str, str]:
        token = base64.b64encode(f"API_KEY:{self._api_key}".encode()).decode()
        return {"Authorization": f"Basic {token}"}

    async def _request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET an endpoint, retrying rate-limited responses with backoff.

        Raises:
            AuthenticationError: On 401/403
            RateLimitError: If still rate limited after the last retry
            RequestTimeoutError: If the request timed out
            IntegrationError: For other API errors
        """
        url = f"{self.base_url}{endpoint}"

        for attempt in range(self.max_retries):
            response = await self._send("GET", url, params=params)

            if response.status_code == 200:
                try:
                    return response.json()
                except ValueError as e:
                    raise IntegrationError(
                        f"intervals.icu returned a response that is not JSON: {e}",
                        self.provider,
                        "invalid_response",
                    ) from e

            if response.status_code in (401, 403):
                raise AuthenticationError(
                    "intervals.icu rejected the credentials. Check your athlete ID and API key.",
                    self.provider,
                )

            if response.status_code == 429:
                retry_after = get_retry_after(response, default=2 ** attempt)
                if attempt < self.max_retries - 1:
                    wait = min(retry_after, self.max_backoff)
                    logger.warning("intervals.icu rate limited, retrying in %ss", wait)
                    await asyncio.sleep(wait)
                    continue
                raise RateLimitError(
                    "intervals.icu rate limit exceeded. Please wait before retrying.",
                    self.provider,
                    retry_after,
                )

            raise IntegrationError(
                f"intervals.icu API error: {error_message(response)}",
                self.provider,
                str(response.status_code),
            )

        raise IntegrationError("Max retries exceeded", self.provider)

    async def list_activities(self, oldest: str, newest: Optional[str] = None) -> List[Dict[str, Any]]:
        """List activity summaries starting at ``oldest`` (YYYY-MM-DD)."""
        params = {"oldest": oldest}
        if newest:
            params["newest"] = newest
        data = await self._request(f"/athlete/{self.athlete_id}/activities", params=params)
        return data if isinstance(data, list) else []

    async def get_activity(self, activity_id: Any) -> Dict[str, Any]:
        """Fetch the detailed record for one activity."""
        data = await self._request(f"/athlete/{self.athlete_id}/activities/{activity_id}")
        if not isinstance(data, dict):
            raise IntegrationError(
                f"intervals.icu returned an unexpected body for activity {activity_id}",
                self.provider,
                "invalid_response",
            )
        return data
