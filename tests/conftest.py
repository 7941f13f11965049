"""Pytest configuration and fixtures."""

import json
from datetime import date, timedelta

import httpx
import pytest

from ride_progression.integrations.drive import DriveClient
from ride_progression.integrations.intervals import IntervalsClient
from ride_progression.models.workouts import Classification, Progression, WorkoutRecord, new_workout_id


TODAY = date(2025, 3, 15)


@pytest.fixture
def today() -> date:
    """Fixed reference date for window calculations."""
    return TODAY


@pytest.fixture
def make_record():
    """Factory for workout records dated relative to TODAY."""

    def _make(
        days_ago: int = 0,
        tss: float = 50.0,
        zone: str = "endurance",
        normalized_power: float = 150.0,
        duration: int = 60,
        rpe: int = 5,
        classified: bool = True,
        record_date: str = None,
    ) -> WorkoutRecord:
        classification = None
        if classified:
            classification = Classification(
                zone=zone,
                workout_level=3.0,
                rpe=rpe,
                progression=Progression.between(2.0, 2.5),
            )
        return WorkoutRecord(
            id=new_workout_id(),
            date=record_date or (TODAY - timedelta(days=days_ago)).isoformat(),
            duration=duration,
            normalized_power=normalized_power,
            tss=tss,
            classification=classification,
        )

    return _make


class FixedClock:
    """Clock returning increasing ISO timestamps, one second apart."""

    def __init__(self, start: str = "2025-03-15T10:00:00"):
        self._seconds = 0
        self._start = start

    def __call__(self) -> str:
        self._seconds += 1
        return f"{self._start[:-2]}{self._seconds:02d}.000Z"


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


class FakeDrive:
    """In-memory stand-in for the Drive v3 endpoints the sync uses."""

    def __init__(self):
        self.file = None
        self.file_id = "file-1"
        self.fail_with = None
        self.retry_after = None
        self.gate = None
        self.requests = []
        self.uploads = []

    def handler(self, request: httpx.Request):
        self.requests.append(request)
        if self.gate is not None:
            return self._gated(request)
        return self._respond(request)

    async def _gated(self, request):
        await self.gate.wait()
        return self._respond(request)

    def _respond(self, request: httpx.Request) -> httpx.Response:
        if self.fail_with is not None:
            headers = {"Retry-After": str(self.retry_after)} if self.retry_after else {}
            return httpx.Response(self.fail_with, json={"error": {"message": "nope"}}, headers=headers)

        path = request.url.path
        if request.method == "GET" and path == "/drive/v3/files":
            files = [] if self.file is None else [{"id": self.file_id, "name": "backup.json"}]
            return httpx.Response(200, json={"files": files})
        if request.method == "GET" and path == f"/drive/v3/files/{self.file_id}":
            return httpx.Response(200, json=self.file)
        if request.method == "POST" and path == "/upload/drive/v3/files":
            boundary = request.headers["content-type"].split("boundary=")[1]
            parts = request.content.decode().split(f"--{boundary}")
            self.file = json.loads(parts[2].split("\r\n\r\n", 1)[1].rstrip("\r\n"))
            self.uploads.append(self.file)
            return httpx.Response(200, json={"id": self.file_id, "name": "backup.json"})
        if request.method == "PATCH" and path == f"/upload/drive/v3/files/{self.file_id}":
            self.file = json.loads(request.content)
            self.uploads.append(self.file)
            return httpx.Response(200, json={"id": self.file_id, "name": "backup.json"})
        return httpx.Response(404, json={"error": {"message": f"unexpected {request.method} {path}"}})


@pytest.fixture
def fake_drive() -> FakeDrive:
    return FakeDrive()


@pytest.fixture
def drive_client(fake_drive) -> DriveClient:
    async def token_provider() -> str:
        return "ya29.test-token"

    return DriveClient(
        token_provider,
        filename="backup.json",
        transport=httpx.MockTransport(fake_drive.handler),
    )


def _intervals_activity(activity_id, day, np=200, load=70, activity_type="Ride", **extra):
    """Detail record shaped like an intervals.icu activity."""
    data = {
        "id": activity_id,
        "type": activity_type,
        "name": f"Ride {activity_id}",
        "start_date_local": f"{day}T07:30:00",
        "moving_time": 3600,
        "icu_np": np,
        "icu_training_load": load,
    }
    data.update(extra)
    return data


class FakeIntervals:
    """In-memory intervals.icu: a list endpoint plus per-activity details."""

    def __init__(self):
        self.activities = {}
        self.detail_status = {}
        self.detail_text = {}
        self.detail_timeouts = set()
        self.list_status = 200
        self.gate = None
        self.requests = []

    def add(self, activity):
        self.activities[activity["id"]] = activity

    def handler(self, request: httpx.Request):
        self.requests.append(request)
        if self.gate is not None:
            return self._gated(request)
        return self._respond(request)

    async def _gated(self, request):
        await self.gate.wait()
        return self._respond(request)

    def _respond(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/activities"):
            if self.list_status != 200:
                return httpx.Response(self.list_status, json={"message": "denied"})
            summaries = [
                {"id": a["id"], "type": a["type"], "start_date_local": a["start_date_local"]}
                for a in self.activities.values()
            ]
            return httpx.Response(200, json=summaries)
        activity_id = path.rsplit("/", 1)[-1]
        if activity_id in self.detail_timeouts:
            raise httpx.ReadTimeout("timed out", request=request)
        if activity_id in self.detail_text:
            return httpx.Response(200, text=self.detail_text[activity_id])
        status = self.detail_status.get(activity_id, 200)
        if status != 200:
            return httpx.Response(status, json={"message": "server error"})
        return httpx.Response(200, json=self.activities[activity_id])


@pytest.fixture
def make_activity():
    """Factory for intervals.icu detail records."""
    return _intervals_activity


@pytest.fixture
def fake_intervals() -> FakeIntervals:
    return FakeIntervals()


@pytest.fixture
def intervals_client(fake_intervals) -> IntervalsClient:
    return IntervalsClient(
        "i12345",
        "secret-key",
        max_retries=2,
        transport=httpx.MockTransport(fake_intervals.handler),
    )
