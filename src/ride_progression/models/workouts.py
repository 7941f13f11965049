"""Workout record models.

A record is either unclassified (imported, waiting for the athlete to pick a
zone and rate the effort) or classified. The classification carries the
progression delta it produced, so a progression can never be computed
against a missing zone.

Serialization keeps the flat camelCase shape of the exported data file:
``zone``, ``workoutLevel``, ``rpe``, ``previousLevel``, ``newLevel`` and
``change`` are all null for an unclassified record.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Optional

from .schemas import RecordSchema, parse_stored


DATE_FORMAT = "%Y-%m-%d"


def new_workout_id() -> str:
    return uuid.uuid4().hex


def parse_record_date(value: Any) -> Optional[date]:
    """Parse a ``YYYY-MM-DD`` record date. Returns None when it is unusable."""
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


@dataclass(frozen=True)
class Progression:
    """Level movement produced by one classified workout."""

    previous_level: float
    new_level: float
    change: float

    @classmethod
    def between(cls, previous_level: float, new_level: float) -> "Progression":
        return cls(
            previous_level=previous_level,
            new_level=new_level,
            change=round(new_level - previous_level, 2),
        )


@dataclass(frozen=True)
class Classification:
    """Zone assignment and effort rating for a workout.

    ``progression`` is None for zones exempt from progression (recovery).
    """

    zone: str
    workout_level: float
    rpe: Optional[int]
    progression: Optional[Progression] = None


@dataclass
class WorkoutRecord:
    """A single ride in the athlete's history."""

    id: str
    date: str  # YYYY-MM-DD, kept as text so a bad value survives a round-trip
    duration: int  # minutes
    normalized_power: Optional[float]
    tss: Optional[float] = None
    intensity_factor: Optional[float] = None
    completed: bool = True
    notes: str = ""
    source: str = "manual"
    classification: Optional[Classification] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_classified(self) -> bool:
        return self.classification is not None

    @property
    def zone(self) -> Optional[str]:
        return self.classification.zone if self.classification else None

    @property
    def rpe(self) -> Optional[int]:
        return self.classification.rpe if self.classification else None

    @property
    def progression(self) -> Optional[Progression]:
        return self.classification.progression if self.classification else None

    @property
    def parsed_date(self) -> Optional[date]:
        return parse_record_date(self.date)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the exported JSON shape."""
        classification = self.classification
        progression = self.progression
        data: Dict[str, Any] = dict(self.extra)
        data.update({
            "id": self.id,
            "date": self.date,
            "zone": classification.zone if classification else None,
            "workoutLevel": classification.workout_level if classification else None,
            "rpe": classification.rpe if classification else None,
            "completed": self.completed,
            "duration": self.duration,
            "normalizedPower": self.normalized_power,
            "tss": self.tss,
            "intensityFactor": self.intensity_factor,
            "previousLevel": progression.previous_level if progression else None,
            "newLevel": progression.new_level if progression else None,
            "change": progression.change if progression else None,
            "notes": self.notes,
            "source": self.source,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkoutRecord":
        """Create a record from the exported JSON shape.

        Numeric ids written by older exports are converted to strings.

        Raises:
            ImportFormatError: If a field has the wrong type or range
        """
        return cls.from_schema(parse_stored(RecordSchema, data, "workout record"))

    @classmethod
    def from_schema(cls, parsed: RecordSchema) -> "WorkoutRecord":
        classification = None
        if parsed.zone:
            progression = None
            if parsed.previous_level is not None and parsed.new_level is not None:
                change = parsed.change
                if change is None:
                    change = round(parsed.new_level - parsed.previous_level, 2)
                progression = Progression(
                    previous_level=parsed.previous_level,
                    new_level=parsed.new_level,
                    change=change,
                )
            classification = Classification(
                zone=parsed.zone,
                workout_level=parsed.workout_level if parsed.workout_level is not None else 1.0,
                rpe=parsed.rpe,
                progression=progression,
            )

        return cls(
            id=parsed.id if parsed.id is not None else new_workout_id(),
            date=parsed.date,
            duration=int(parsed.duration) if parsed.duration is not None else 0,
            normalized_power=parsed.normalized_power,
            tss=parsed.tss,
            intensity_factor=parsed.intensity_factor,
            completed=True if parsed.completed is None else parsed.completed,
            notes=parsed.notes or "",
            source=parsed.source or "manual",
            classification=classification,
            extra=dict(parsed.model_extra or {}),
        )


@dataclass
class ImportCandidate:
    """Normalized activity handed to the reconciler by an import source.

    Adapters for external sources (intervals.icu, CSV, pasted JSON) are
    responsible for mapping their field names onto this shape.
    """

    date: Optional[str]
    normalized_power: Optional[float]
    duration: int = 0  # minutes
    tss: Optional[float] = None  # upstream training load, when provided
    name: str = ""
    source: str = "import"
    external_id: Optional[str] = None

    @property
    def has_power(self) -> bool:
        return self.normalized_power is not None and self.normalized_power > 0
