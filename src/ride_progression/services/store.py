"""In-process store for levels, history and athlete settings.

All mutations go through this class. A re-entrant lock serializes writers so
two triggers (an import and a manual log, say) cannot interleave their
updates. Every mutation stamps ``exported_at``, which sync uses to decide
direction, and persists the snapshot when the store is bound to a file.
"""

import json
import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional

from ..analysis.insights import Insight, generate_insights
from ..exceptions import (
    ImportFormatError,
    StorageError,
    ValidationError,
    WorkoutAlreadyClassifiedError,
    WorkoutNotFoundError,
)
from ..metrics.load import TrainingLoads, calculate_intensity_factor, calculate_training_loads, calculate_tss
from ..metrics.progression import apply_workout
from ..metrics.zones import default_levels, get_zone, progression_zones
from ..models.schemas import ClassifyInput, WorkoutLogInput, validate_workout_input
from ..models.snapshot import AthleteProfile, Snapshot, utc_now_iso
from ..models.workouts import Classification, WorkoutRecord, new_workout_id
from ..utils.atomic_write import atomic_write
from .reconciler import is_duplicate, merge_history, sort_history

logger = logging.getLogger(__name__)


class TrainingStore:
    """Owns the mutable training state."""

    def __init__(
        self,
        snapshot: Optional[Snapshot] = None,
        path: Optional[Path] = None,
        clock: Callable[[], str] = utc_now_iso,
        default_ftp: int = 235,
    ):
        snapshot = snapshot or Snapshot(levels=default_levels(), history=[], ftp=default_ftp)
        self._lock = threading.RLock()
        self._clock = clock
        self.path = Path(path) if path else None
        self._apply_snapshot(snapshot)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def ftp(self) -> int:
        return self._ftp

    @property
    def levels(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._levels)

    @property
    def history(self) -> List[WorkoutRecord]:
        with self._lock:
            return list(self._history)

    @property
    def exported_at(self) -> Optional[str]:
        return self._exported_at

    @property
    def profile(self) -> Optional[AthleteProfile]:
        return self._profile

    def get_workout(self, workout_id: str) -> WorkoutRecord:
        with self._lock:
            for record in self._history:
                if record.id == workout_id:
                    return record
        raise WorkoutNotFoundError(workout_id)

    def unclassified(self) -> List[WorkoutRecord]:
        """Imported rides still waiting for a zone."""
        with self._lock:
            return [record for record in self._history if not record.is_classified]

    def recent_changes(self) -> Dict[str, dict]:
        """Most recent non-zero level change per zone, newest history first."""
        changes: Dict[str, dict] = {}
        with self._lock:
            for zone in progression_zones():
                for record in self._history:
                    if record.zone != zone.id or record.progression is None:
                        continue
                    if record.progression.change != 0:
                        changes[zone.id] = {
                            "change": record.progression.change,
                            "date": record.date,
                        }
                    break
        return changes

    def training_loads(self, today: Optional[date] = None) -> TrainingLoads:
        return calculate_training_loads(self.history, today)

    def insights(self, today: Optional[date] = None) -> List[Insight]:
        history = self.history
        loads = calculate_training_loads(history, today)
        return generate_insights(loads, history, self.levels, today)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Hold the lock and restore the previous state if the change or the save fails."""
        with self._lock:
            before = self.to_snapshot()
            try:
                yield
                self._touch()
            except Exception:
                self._apply_snapshot(before)
                raise

    def log_workout(
        self,
        workout_date: str,
        zone: str,
        workout_level: float,
        rpe: Optional[int],
        completed: bool,
        duration: int,
        normalized_power: float,
        notes: str = "",
    ) -> WorkoutRecord:
        """
        Log a manually entered workout and run progression immediately.

        Raises:
            WorkoutValidationError: On out-of-range input or a bad date
            ValidationError: On an unknown zone
            StorageError: If the data file cannot be written
        """
        get_zone(zone)
        entry = validate_workout_input(
            WorkoutLogInput,
            date=workout_date,
            zone=zone,
            workout_level=workout_level,
            rpe=rpe,
            completed=completed,
            duration=duration,
            normalized_power=normalized_power,
            notes=notes,
        )

        with self._transaction():
            progression = apply_workout(
                self._levels, entry.zone, entry.workout_level, entry.rpe, entry.completed
            )
            record = WorkoutRecord(
                id=new_workout_id(),
                date=entry.date,
                duration=entry.duration,
                normalized_power=entry.normalized_power,
                tss=float(calculate_tss(entry.normalized_power, entry.duration, self._ftp)),
                intensity_factor=calculate_intensity_factor(entry.normalized_power, self._ftp),
                completed=entry.completed,
                notes=entry.notes,
                source="manual",
                classification=Classification(
                    zone=entry.zone,
                    workout_level=entry.workout_level,
                    rpe=entry.rpe,
                    progression=progression,
                ),
            )
            self._history = sort_history([record] + self._history)

        logger.info("Logged %s workout %s on %s", zone, record.id, record.date)
        return record

    def add_imported(self, records: List[WorkoutRecord]) -> List[WorkoutRecord]:
        """
        Merge reconciled, unclassified records into the history.

        Duplicates are checked again against the history as it is now, so a
        ride logged while an import was running is not stored twice.

        Returns:
            The records actually added
        """
        if not records:
            return []
        with self._transaction():
            added: List[WorkoutRecord] = []
            for record in records:
                record_date = record.parsed_date
                if (
                    record_date is not None
                    and record.normalized_power is not None
                    and is_duplicate(record_date, record.normalized_power, self._history + added)
                ):
                    logger.info("Dropping imported ride on %s, already in history", record.date)
                    continue
                added.append(record)
            self._history = merge_history(self._history, added)
        return added

    def classify_workout(
        self,
        workout_id: str,
        zone: str,
        workout_level: float,
        rpe: Optional[int],
        completed: Optional[bool] = None,
    ) -> WorkoutRecord:
        """
        Assign a zone and effort rating to an imported ride.

        Progression runs against the zone's live level at classification
        time, not the level it had on the ride date.

        Raises:
            WorkoutNotFoundError: If no record has this id
            WorkoutAlreadyClassifiedError: If the record already has a zone
        """
        get_zone(zone)
        entry = validate_workout_input(
            ClassifyInput,
            zone=zone,
            workout_level=workout_level,
            rpe=rpe,
            completed=completed,
        )

        with self._transaction():
            record = self.get_workout(workout_id)
            if record.classification is not None:
                raise WorkoutAlreadyClassifiedError(workout_id, record.classification.zone)

            is_completed = record.completed if entry.completed is None else entry.completed
            progression = apply_workout(
                self._levels, entry.zone, entry.workout_level, entry.rpe, is_completed
            )
            updated = replace(
                record,
                completed=is_completed,
                classification=Classification(
                    zone=entry.zone,
                    workout_level=entry.workout_level,
                    rpe=entry.rpe,
                    progression=progression,
                ),
            )
            self._history = [updated if item.id == workout_id else item for item in self._history]

        logger.info("Classified workout %s as %s", workout_id, zone)
        return updated

    def delete_workout(self, workout_id: str) -> WorkoutRecord:
        """Remove a record. Levels keep whatever progression it produced."""
        with self._transaction():
            record = self.get_workout(workout_id)
            self._history = [item for item in self._history if item.id != workout_id]
        logger.info("Deleted workout %s", workout_id)
        return record

    def set_ftp(self, ftp: int) -> None:
        """Change FTP. Zones re-derive from it; stored TSS values are kept."""
        if ftp <= 0:
            raise ValidationError(f"FTP must be positive, got {ftp}", field="ftp")
        with self._transaction():
            self._ftp = int(ftp)

    def set_profile(self, profile: AthleteProfile) -> None:
        with self._transaction():
            self._profile = profile

    def replace_from_snapshot(self, snapshot: Snapshot) -> None:
        """Replace all local state, e.g. after a JSON import or a sync pull.

        The snapshot's own ``exportedAt`` is kept so the next sync sees both
        sides as equal.
        """
        with self._lock:
            before = self.to_snapshot()
            self._apply_snapshot(snapshot)
            try:
                self._persist()
            except StorageError:
                self._apply_snapshot(before)
                raise
        logger.info("Replaced local data with snapshot of %d rides", snapshot.ride_count)

    # ------------------------------------------------------------------
    # Snapshot and persistence
    # ------------------------------------------------------------------

    def to_snapshot(self) -> Snapshot:
        with self._lock:
            return Snapshot(
                levels=dict(self._levels),
                history=list(self._history),
                ftp=self._ftp,
                exported_at=self._exported_at,
                profile=self._profile,
                event=self._event,
                extra=dict(self._extra),
            )

    def save(self, path: Optional[Path] = None) -> Path:
        target = Path(path) if path else self.path
        if target is None:
            raise StorageError("No data file configured")
        data = self.to_snapshot().to_dict()
        try:
            with atomic_write(target) as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise StorageError(f"Could not write data file: {e}", path=str(target)) from e
        return target

    @classmethod
    def load(cls, path: Path, default_ftp: int = 235) -> "TrainingStore":
        """Open the data file, starting empty when it does not exist yet."""
        path = Path(path)
        if not path.exists():
            logger.info("No data file at %s, starting fresh", path)
            return cls(path=path, default_ftp=default_ftp)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise StorageError(f"Could not read data file: {e}", path=str(path)) from e
        except json.JSONDecodeError as e:
            raise ImportFormatError(f"Data file is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ImportFormatError("Data file must contain a JSON object")
        return cls(Snapshot.from_dict(data, default_ftp=default_ftp), path=path, default_ftp=default_ftp)

    def _apply_snapshot(self, snapshot: Snapshot) -> None:
        levels = default_levels()
        levels.update(snapshot.levels)
        self._levels = levels
        self._history = sort_history(list(snapshot.history))
        self._ftp = snapshot.ftp
        self._exported_at = snapshot.exported_at
        self._profile = snapshot.profile
        self._event = snapshot.event
        self._extra = dict(snapshot.extra)

    def _touch(self) -> None:
        self._exported_at = self._clock()
        self._persist()

    def _persist(self) -> None:
        if self.path is not None:
            self.save()
