"""Tests for snapshot serialization and timestamps."""

from datetime import datetime, timezone

import pytest

from ride_progression.exceptions import ImportFormatError
from ride_progression.models.snapshot import AthleteProfile, Snapshot, parse_timestamp, utc_now_iso


class TestSnapshot:
    def test_round_trip_keeps_sync_metadata(self, make_record):
        data = {
            "levels": {"endurance": 3.5},
            "history": [make_record().to_dict()],
            "ftp": 240,
            "exportedAt": "2025-03-15T10:00:00.000Z",
            "profile": {"maxHR": 186, "weight": 71.5},
            "syncVersion": 4,
            "lastSyncedAt": "2025-03-15T10:05:00.000Z",
        }
        snapshot = Snapshot.from_dict(data)
        out = snapshot.to_dict()

        assert out["syncVersion"] == 4
        assert out["lastSyncedAt"] == "2025-03-15T10:05:00.000Z"
        assert out["profile"]["maxHR"] == 186
        assert out["levels"]["endurance"] == 3.5
        assert out["levels"]["anaerobic"] == 1.0
        assert snapshot.profile == AthleteProfile(max_hr=186, weight_kg=71.5)

    def test_defaults(self):
        snapshot = Snapshot.from_dict({}, default_ftp=260)
        assert snapshot.ftp == 260
        assert snapshot.history == []
        assert "profile" not in snapshot.to_dict()

    def test_levels_clamped(self):
        snapshot = Snapshot.from_dict({"levels": {"tempo": 0, "vo2max": "12.5"}})
        assert snapshot.levels["tempo"] == 1.0
        assert snapshot.levels["vo2max"] == 10.0

    def test_blank_profile_and_zero_ftp_use_defaults(self):
        snapshot = Snapshot.from_dict({"profile": {}, "ftp": 0}, default_ftp=250)
        assert snapshot.profile is None
        assert snapshot.ftp == 250


class TestMalformedSnapshot:
    """Bad shapes are reported as ImportFormatError, never a raw exception."""

    @pytest.mark.parametrize(
        "data",
        [
            {"levels": [1, 2]},
            {"levels": {"tempo": "high"}},
            {"ftp": "abc"},
            {"history": {"id": "a"}},
            {"history": ["garbage"]},
            {"history": [{"id": "a", "zone": "tempo", "rpe": "hard"}]},
            {"history": [{"id": "a", "zone": "tempo", "workoutLevel": 14}]},
            {"profile": {"maxHR": "fast"}},
            {"exportedAt": 12},
        ],
    )
    def test_rejected(self, data):
        with pytest.raises(ImportFormatError):
            Snapshot.from_dict(data)

    def test_message_names_the_field(self):
        with pytest.raises(ImportFormatError, match="history.0.rpe"):
            Snapshot.from_dict({"history": [{"id": "a", "zone": "tempo", "rpe": "hard"}]})


class TestTimestamps:
    def test_parse_z_suffix(self):
        parsed = parse_timestamp("2025-03-15T10:00:00.000Z")
        assert parsed == datetime(2025, 3, 15, 10, tzinfo=timezone.utc)

    def test_missing_or_bad_sorts_first(self):
        assert parse_timestamp(None) < parse_timestamp("2000-01-01T00:00:00Z")
        assert parse_timestamp("yesterday") == parse_timestamp(None)

    def test_now_format(self):
        now = utc_now_iso()
        assert now.endswith("Z")
        assert parse_timestamp(now).tzinfo is not None
