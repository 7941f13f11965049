"""Merge imported activities into the ride history.

Imported rides arrive without a zone or an effort rating. They are stored
unclassified and only affect progression once the athlete classifies them.
Duplicate detection is fuzzy: same calendar day and normalized power within
5W, since different systems round power differently.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional

from ..metrics.load import calculate_intensity_factor, calculate_tss
from ..models.workouts import ImportCandidate, WorkoutRecord, new_workout_id, parse_record_date

logger = logging.getLogger(__name__)

DUPLICATE_POWER_TOLERANCE_W = 5
MAX_SKIP_REASONS = 5


@dataclass
class SkipCounts:
    """Per-category tallies of rejected candidates."""

    no_power: int = 0
    duplicate: int = 0
    invalid_date: int = 0
    fetch_error: int = 0
    other: int = 0

    @property
    def total(self) -> int:
        return self.no_power + self.duplicate + self.invalid_date + self.fetch_error + self.other

    def to_dict(self) -> dict:
        return {
            "noPower": self.no_power,
            "duplicate": self.duplicate,
            "invalidDate": self.invalid_date,
            "fetchError": self.fetch_error,
            "other": self.other,
        }


@dataclass
class ReconcileResult:
    """Outcome of reconciling one batch of candidates."""

    accepted: List[WorkoutRecord] = field(default_factory=list)
    skipped: SkipCounts = field(default_factory=SkipCounts)
    skip_reasons: List[str] = field(default_factory=list)

    def note(self, reason: str) -> None:
        if len(self.skip_reasons) < MAX_SKIP_REASONS:
            self.skip_reasons.append(reason)


def is_duplicate(
    candidate_date: date,
    normalized_power: float,
    history: Iterable[WorkoutRecord],
) -> bool:
    """Same calendar day and normalized power within the tolerance."""
    for record in history:
        if record.normalized_power is None or record.parsed_date != candidate_date:
            continue
        if abs(record.normalized_power - normalized_power) < DUPLICATE_POWER_TOLERANCE_W:
            return True
    return False


def sort_history(history: List[WorkoutRecord]) -> List[WorkoutRecord]:
    """Newest first. Records with unparseable dates sink to the end."""
    return sorted(
        history,
        key=lambda record: record.parsed_date or date.min,
        reverse=True,
    )


def build_record(candidate: ImportCandidate, ftp: float) -> WorkoutRecord:
    """Turn an accepted candidate into an unclassified record."""
    normalized_power = float(candidate.normalized_power or 0)
    if candidate.tss is not None and candidate.tss > 0:
        tss = float(candidate.tss)
    else:
        tss = float(calculate_tss(normalized_power, candidate.duration, ftp))

    notes = f"Imported from {candidate.source}"
    if candidate.name:
        notes += f": {candidate.name}"

    extra = {"externalId": candidate.external_id} if candidate.external_id else {}
    return WorkoutRecord(
        id=new_workout_id(),
        date=parse_record_date(candidate.date).isoformat(),
        duration=candidate.duration,
        normalized_power=round(normalized_power),
        tss=tss,
        intensity_factor=calculate_intensity_factor(normalized_power, ftp),
        completed=True,
        notes=notes,
        source=candidate.source,
        classification=None,
        extra=extra,
    )


def reconcile_candidate(
    candidate: ImportCandidate,
    history: List[WorkoutRecord],
    ftp: float,
    result: ReconcileResult,
) -> Optional[WorkoutRecord]:
    """
    Check one candidate against the history and record the outcome.

    ``history`` should include rides accepted earlier in the same batch so a
    batch never imports the same ride twice.

    Returns:
        The accepted record, or None when it was skipped
    """
    label = candidate.name or candidate.external_id or candidate.date or "activity"

    if not candidate.has_power:
        result.skipped.no_power += 1
        result.note(f'"{label}" - no power data')
        return None

    candidate_date = parse_record_date(candidate.date)
    if candidate_date is None:
        result.skipped.invalid_date += 1
        result.note(f'"{label}" - invalid date {candidate.date!r}')
        return None

    if is_duplicate(candidate_date, candidate.normalized_power, history):
        result.skipped.duplicate += 1
        return None

    record = build_record(candidate, ftp)
    result.accepted.append(record)
    return record


def import_records(
    candidates: Iterable[ImportCandidate],
    existing_history: List[WorkoutRecord],
    ftp: float,
) -> ReconcileResult:
    """
    Reconcile a batch of candidates against the existing history.

    Args:
        candidates: Normalized activities from an import source
        existing_history: Current ride history
        ftp: FTP used to derive TSS and IF

    Returns:
        ReconcileResult with accepted records and skip tallies
    """
    result = ReconcileResult()
    seen = list(existing_history)
    for candidate in candidates:
        record = reconcile_candidate(candidate, seen, ftp, result)
        if record is not None:
            seen.append(record)

    logger.info(
        "Reconciled import batch: %d accepted, %d skipped",
        len(result.accepted),
        result.skipped.total,
    )
    return result


def merge_history(
    existing_history: List[WorkoutRecord],
    accepted: List[WorkoutRecord],
) -> List[WorkoutRecord]:
    """Combine histories and keep them sorted newest first."""
    return sort_history(list(accepted) + list(existing_history))
