"""
Pydantic models for data crossing the package boundary.

Manual entries are checked with ``WorkoutLogInput`` and ``ClassifyInput``.
Stored, exported and synced JSON goes through ``SnapshotSchema`` (and
``RecordSchema`` per ride) before it becomes dataclasses, so a malformed
file is reported as an error instead of failing deep inside a calculation.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ImportFormatError, WorkoutValidationError
from ..metrics.zones import MAX_LEVEL, MIN_LEVEL

ModelT = TypeVar("ModelT", bound=BaseModel)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def describe_validation_error(error: PydanticValidationError) -> str:
    """First failure of a pydantic error as ``field.path: message``."""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


# ============================================================================
# Manual input
# ============================================================================

class EffortInput(BaseModel):
    """Zone and effort rating shared by logging and classifying."""

    zone: str = Field(..., min_length=1)
    workout_level: float = Field(..., ge=MIN_LEVEL, le=MAX_LEVEL, description="Workout level (1-10)")
    rpe: Optional[int] = Field(None, ge=1, le=10, description="Rate of Perceived Exertion (1-10)")


class WorkoutLogInput(EffortInput):
    """A manually logged workout."""

    date: str = Field(..., description="Date in YYYY-MM-DD format")
    completed: bool = True
    duration: int = Field(..., ge=1, description="Duration in minutes")
    normalized_power: float = Field(..., gt=0, description="Normalized power in watts")
    notes: str = Field("", max_length=1000)

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        """Validate date format."""
        try:
            datetime.strptime(v, "%Y-%m-%d")
        except ValueError:
            raise ValueError("Date must be in YYYY-MM-DD format")
        return v


class ClassifyInput(EffortInput):
    """Classification of an imported ride."""

    completed: Optional[bool] = None


def validate_workout_input(model: Type[ModelT], **values: Any) -> ModelT:
    """
    Build an input model, raising WorkoutValidationError on bad values.

    The error's ``field`` is the camelCase name used in the data file.
    """
    try:
        return model(**values)
    except PydanticValidationError as e:
        loc = e.errors()[0].get("loc", ())
        field = _camel(str(loc[0])) if loc else None
        raise WorkoutValidationError(describe_validation_error(e), field=field) from e


# ============================================================================
# Stored JSON
# ============================================================================

class RecordSchema(BaseModel):
    """One ride as written to the data file. Unknown keys are kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    date: str = ""
    zone: Optional[str] = None
    workout_level: Optional[float] = Field(None, alias="workoutLevel", ge=MIN_LEVEL, le=MAX_LEVEL)
    rpe: Optional[int] = Field(None, ge=1, le=10)
    completed: Optional[bool] = None
    duration: Optional[float] = Field(None, ge=0)
    normalized_power: Optional[float] = Field(None, alias="normalizedPower")
    tss: Optional[float] = None
    intensity_factor: Optional[float] = Field(None, alias="intensityFactor")
    previous_level: Optional[float] = Field(None, alias="previousLevel")
    new_level: Optional[float] = Field(None, alias="newLevel")
    change: Optional[float] = None
    notes: Optional[str] = None
    source: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v: Any) -> Any:
        # Older exports used millisecond timestamps as ids
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("date", mode="before")
    @classmethod
    def default_date(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator(
        "zone",
        "workout_level",
        "rpe",
        "duration",
        "normalized_power",
        "tss",
        "intensity_factor",
        "previous_level",
        "new_level",
        "change",
        mode="before",
    )
    @classmethod
    def blank_is_missing(cls, v: Any) -> Any:
        return _blank_to_none(v)


class ProfileSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    max_hr: Optional[int] = Field(None, alias="maxHR", gt=0)
    resting_hr: Optional[int] = Field(None, alias="restingHR", gt=0)
    weight_kg: Optional[float] = Field(None, alias="weight", gt=0)
    age: Optional[int] = Field(None, gt=0)
    sex: Optional[str] = None

    @field_validator("max_hr", "resting_hr", "weight_kg", "age", mode="before")
    @classmethod
    def blank_is_missing(cls, v: Any) -> Any:
        return _blank_to_none(v)


class SnapshotSchema(BaseModel):
    """Whole tracker state. Sync metadata and other unknown keys are kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    levels: Dict[str, float] = Field(default_factory=dict)
    history: List[RecordSchema] = Field(default_factory=list)
    ftp: Optional[int] = Field(None, ge=0)
    exported_at: Optional[str] = Field(None, alias="exportedAt")
    profile: Optional[ProfileSchema] = None
    event: Optional[Dict[str, Any]] = None

    @field_validator("levels", mode="before")
    @classmethod
    def default_levels(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("levels")
    @classmethod
    def clamp_levels(cls, v: Dict[str, float]) -> Dict[str, float]:
        return {zone: max(MIN_LEVEL, min(MAX_LEVEL, level)) for zone, level in v.items()}

    @field_validator("history", mode="before")
    @classmethod
    def default_history(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("ftp", "profile", mode="before")
    @classmethod
    def blank_is_missing(cls, v: Any) -> Any:
        if v == {}:
            return None
        return _blank_to_none(v)


def parse_stored(model: Type[ModelT], data: Any, what: str) -> ModelT:
    """Validate stored JSON, raising ImportFormatError on a bad shape."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ImportFormatError(
            f"Invalid {what}: {describe_validation_error(e)}",
            details={"errors": e.error_count()},
        ) from e
