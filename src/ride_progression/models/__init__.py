"""Data models for workouts and persisted snapshots."""

from .snapshot import AthleteProfile, Snapshot, parse_timestamp, utc_now_iso
from .workouts import (
    Classification,
    ImportCandidate,
    Progression,
    WorkoutRecord,
    new_workout_id,
    parse_record_date,
)

__all__ = [
    "AthleteProfile",
    "Classification",
    "ImportCandidate",
    "Progression",
    "Snapshot",
    "WorkoutRecord",
    "new_workout_id",
    "parse_record_date",
    "parse_timestamp",
    "utc_now_iso",
]
