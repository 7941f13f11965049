"""Tests for workout record serialization."""

import pytest

from ride_progression.exceptions import ImportFormatError
from ride_progression.models.workouts import (
    Classification,
    Progression,
    WorkoutRecord,
    parse_record_date,
)


class TestWorkoutRecord:
    def test_unclassified_serializes_nulls(self, make_record):
        data = make_record(classified=False).to_dict()

        assert data["zone"] is None
        assert data["workoutLevel"] is None
        assert data["rpe"] is None
        assert data["previousLevel"] is None
        assert data["change"] is None

    def test_classified_round_trip(self):
        record = WorkoutRecord(
            id="abc",
            date="2025-03-10",
            duration=75,
            normalized_power=221.0,
            tss=98.0,
            intensity_factor=0.94,
            completed=False,
            notes="cracked on the last rep",
            classification=Classification("threshold", 5.0, 9, Progression.between(5.0, 4.5)),
        )
        restored = WorkoutRecord.from_dict(record.to_dict())

        assert restored == record
        assert restored.progression.change == -0.5

    def test_unknown_keys_preserved(self):
        data = {"id": 5, "date": "2025-03-10", "duration": 30, "normalizedPower": 150, "hrAvg": 131}
        record = WorkoutRecord.from_dict(data)

        assert record.id == "5"
        assert record.extra == {"hrAvg": 131}
        assert record.to_dict()["hrAvg"] == 131

    def test_zone_without_levels_has_no_progression(self):
        record = WorkoutRecord.from_dict({"id": "x", "date": "2025-03-10", "zone": "recovery", "rpe": 2})
        assert record.is_classified
        assert record.progression is None

    def test_blank_numbers_read_as_missing(self):
        record = WorkoutRecord.from_dict(
            {"id": "x", "date": "2025-03-10", "zone": "", "rpe": "", "normalizedPower": "", "tss": " "}
        )
        assert not record.is_classified
        assert record.normalized_power is None
        assert record.tss is None

    @pytest.mark.parametrize(
        "data",
        [
            {"id": "x", "zone": "tempo", "rpe": "hard"},
            {"id": "x", "zone": "tempo", "rpe": 12},
            {"id": "x", "duration": "an hour"},
            {"id": "x", "completed": "maybe"},
            ["not", "a", "record"],
        ],
    )
    def test_malformed_record_rejected(self, data):
        with pytest.raises(ImportFormatError):
            WorkoutRecord.from_dict(data)


class TestParseRecordDate:
    def test_formats(self):
        assert parse_record_date("2025-03-10").isoformat() == "2025-03-10"
        assert parse_record_date("2025-03-10T08:00:00Z").isoformat() == "2025-03-10"
        assert parse_record_date("10/03/2025") is None
        assert parse_record_date(None) is None
