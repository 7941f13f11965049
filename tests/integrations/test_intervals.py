"""Tests for the intervals.icu client and activity mapping."""

import base64

import httpx
import pytest

from ride_progression.integrations.base import (
    AuthenticationError,
    IntegrationError,
    RateLimitError,
    RequestTimeoutError,
)
from ride_progression.integrations.intervals import (
    IntervalsClient,
    activity_eftp,
    normalize_activity,
)


def _client(handler, **kwargs):
    kwargs.setdefault("max_retries", 3)
    return IntervalsClient("i12345", "secret-key", transport=httpx.MockTransport(handler), **kwargs)


class TestNormalizeActivity:
    """Tests for mapping intervals.icu field spellings."""

    def test_preferred_fields(self, make_activity):
        candidate = normalize_activity(make_activity("i9", "2025-03-10", np=231, load=88))

        assert candidate.date == "2025-03-10"
        assert candidate.normalized_power == 231
        assert candidate.tss == 88
        assert candidate.duration == 60
        assert candidate.source == "intervals.icu"
        assert candidate.external_id == "i9"
        assert candidate.name == "Ride i9"

    def test_power_fallbacks(self):
        candidate = normalize_activity({
            "id": 1,
            "start_date_local": "2025-03-10T06:00:00",
            "icu_np": 0,
            "average_watts": 180,
            "training_load": 55,
            "elapsed_time": 2730,
        })
        assert candidate.normalized_power == 180
        assert candidate.tss == 55
        assert candidate.duration == 46
        assert candidate.external_id == "1"

    def test_missing_power(self):
        candidate = normalize_activity({"id": 2, "start_date_local": "2025-03-10T06:00:00"})
        assert not candidate.has_power
        assert candidate.name == "Ride"

    def test_missing_date(self):
        assert normalize_activity({"id": 3, "icu_np": 200}).date is None

    def test_eftp(self):
        assert activity_eftp({"icu_eftp": 251.2}) == 251.2
        assert activity_eftp({}) is None


class TestIntervalsClient:
    """Tests for requests against the intervals.icu API."""

    def test_requires_credentials(self):
        with pytest.raises(AuthenticationError):
            IntervalsClient("", "key")

    def test_basic_auth_header(self):
        headers = IntervalsClient("i1", "abc").get_auth_headers()
        assert headers["Authorization"] == "Basic " + base64.b64encode(b"API_KEY:abc").decode()

    @pytest.mark.asyncio
    async def test_list_activities_passes_oldest(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[{"id": "i1"}])

        async with _client(handler) as client:
            activities = await client.list_activities(oldest="2024-12-29")

        assert activities == [{"id": "i1"}]
        assert seen[0].url.path == "/api/v1/athlete/i12345/activities"
        assert seen[0].url.params["oldest"] == "2024-12-29"
        assert seen[0].headers["authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_custom_base_url(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": "i7"})

        async with _client(handler, base_url="http://localhost:9000/api/v1/") as client:
            await client.get_activity("i7")

        assert str(seen[0].url) == "http://localhost:9000/api/v1/athlete/i12345/activities/i7"

    @pytest.mark.asyncio
    async def test_retries_after_rate_limit(self):
        responses = [
            httpx.Response(429, headers={"Retry-After": "0"}),
            httpx.Response(200, json={"id": "i1"}),
        ]

        async with _client(lambda request: responses.pop(0)) as client:
            assert await client.get_activity("i1") == {"id": "i1"}
        assert responses == []

    @pytest.mark.asyncio
    async def test_rate_limit_after_last_retry(self):
        async with _client(lambda request: httpx.Response(429, headers={"Retry-After": "0"}), max_retries=2) as client:
            with pytest.raises(RateLimitError) as exc_info:
                await client.get_activity("i1")
        assert exc_info.value.retry_after == 0

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        async with _client(lambda request: httpx.Response(401)) as client:
            with pytest.raises(AuthenticationError):
                await client.list_activities(oldest="2025-01-01")

    @pytest.mark.asyncio
    async def test_server_error(self):
        async with _client(lambda request: httpx.Response(502, json={"message": "bad gateway"})) as client:
            with pytest.raises(IntegrationError) as exc_info:
                await client.get_activity("i1")
        assert exc_info.value.code == "502"
        assert "bad gateway" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_mapped(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with _client(handler, timeout=5.0) as client:
            with pytest.raises(RequestTimeoutError) as exc_info:
                await client.get_activity("i1")
        assert exc_info.value.code == "timeout"

    @pytest.mark.asyncio
    async def test_network_error_mapped(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(IntegrationError) as exc_info:
                await client.get_activity("i1")
        assert exc_info.value.code == "network"

    @pytest.mark.asyncio
    async def test_non_json_body_mapped(self):
        def handler(request):
            return httpx.Response(200, text="<html>maintenance</html>")

        async with _client(handler) as client:
            with pytest.raises(IntegrationError) as exc_info:
                await client.get_activity("i1")
        assert exc_info.value.code == "invalid_response"

    @pytest.mark.asyncio
    async def test_detail_must_be_object(self):
        async with _client(lambda request: httpx.Response(200, json=[1, 2])) as client:
            with pytest.raises(IntegrationError) as exc_info:
                await client.get_activity("i1")
        assert exc_info.value.code == "invalid_response"
