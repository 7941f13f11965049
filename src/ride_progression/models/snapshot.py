"""Athlete profile and the persisted snapshot.

The snapshot is the unit written to the local data file, exported for
manual backup and exchanged with the sync remote:

    {levels, history, ftp, profile?, event?, exportedAt, ...}
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..metrics.zones import default_levels
from .schemas import ProfileSchema, SnapshotSchema, parse_stored
from .workouts import WorkoutRecord


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Optional[str]) -> datetime:
    """Parse an ISO timestamp. Missing or malformed values sort as the epoch."""
    epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
    if not value:
        return epoch
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return epoch
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class AthleteProfile:
    """Optional athlete details. Only FTP drives core calculations."""

    max_hr: Optional[int] = None
    resting_hr: Optional[int] = None
    weight_kg: Optional[float] = None
    age: Optional[int] = None
    sex: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "maxHR": self.max_hr,
            "restingHR": self.resting_hr,
            "weight": self.weight_kg,
            "age": self.age,
            "sex": self.sex,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AthleteProfile":
        return cls.from_schema(parse_stored(ProfileSchema, data or {}, "profile"))

    @classmethod
    def from_schema(cls, parsed: ProfileSchema) -> "AthleteProfile":
        return cls(**parsed.model_dump())


@dataclass
class Snapshot:
    """Serializable state of the tracker."""

    levels: Dict[str, float]
    history: List[WorkoutRecord]
    ftp: int
    exported_at: Optional[str] = None
    profile: Optional[AthleteProfile] = None
    event: Optional[Dict[str, Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)  # syncVersion, lastSyncedAt, ...

    @property
    def ride_count(self) -> int:
        return len(self.history)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra)
        data.update({
            "levels": dict(self.levels),
            "history": [record.to_dict() for record in self.history],
            "ftp": self.ftp,
            "exportedAt": self.exported_at,
        })
        if self.profile is not None:
            data["profile"] = self.profile.to_dict()
        if self.event is not None:
            data["event"] = self.event
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_ftp: int = 235) -> "Snapshot":
        """Build a snapshot from its JSON shape.

        Missing zones start at level 1 and stored levels are clamped to the
        valid range.

        Raises:
            ImportFormatError: If the data does not have the snapshot shape
        """
        parsed = parse_stored(SnapshotSchema, data, "snapshot")

        levels = default_levels()
        levels.update(parsed.levels)
        profile = None
        if parsed.profile is not None:
            profile = AthleteProfile.from_schema(parsed.profile)

        return cls(
            levels=levels,
            history=[WorkoutRecord.from_schema(item) for item in parsed.history],
            ftp=parsed.ftp or default_ftp,
            exported_at=parsed.exported_at,
            profile=profile,
            event=parsed.event,
            extra=dict(parsed.model_extra or {}),
        )
