"""Import rides from an external activity source.

Details are fetched one activity at a time to stay inside the upstream rate
limits. A failed or timed-out fetch is counted and the batch moves on.
Cancelling stops further fetches; rides accepted so far are still committed
and the result says the batch was cancelled.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from ..exceptions import ImportInProgressError
from ..integrations.base import AuthenticationError, IntegrationError, RateLimitError
from ..integrations.intervals import IntervalsClient, activity_eftp, normalize_activity
from ..models.workouts import ImportCandidate, WorkoutRecord
from .reconciler import MAX_SKIP_REASONS, ReconcileResult, SkipCounts, import_records, reconcile_candidate
from .store import TrainingStore

logger = logging.getLogger(__name__)

CYCLING_TYPES = ("ride", "virtualride", "gravelride", "mountainbikeride", "ebikeride", "trackride")

ProgressCallback = Callable[[int, int], None]


@dataclass
class ImportResult:
    """End-of-batch summary of an import."""

    total: int = 0
    accepted: List[WorkoutRecord] = field(default_factory=list)
    skipped: SkipCounts = field(default_factory=SkipCounts)
    skip_reasons: List[str] = field(default_factory=list)
    cancelled: bool = False
    aborted_reason: Optional[str] = None
    suggested_ftp: Optional[int] = None

    @property
    def imported(self) -> int:
        return len(self.accepted)

    @property
    def partial(self) -> bool:
        return self.cancelled or self.aborted_reason is not None

    def summary(self) -> str:
        """User-facing message with counts, in the same words every time."""
        skipped = self.skipped
        if self.imported > 0:
            message = f"Imported {self.imported} activities."
            if skipped.total:
                message += (
                    f" Skipped: {skipped.no_power} without power, {skipped.duplicate} duplicates, "
                    f"{skipped.fetch_error} fetch errors, {skipped.invalid_date + skipped.other} other."
                )
        else:
            message = (
                f"No activities imported. Skipped {skipped.total} total: "
                f"{skipped.no_power} missing power data, {skipped.duplicate} duplicates, "
                f"{skipped.fetch_error} fetch errors, {skipped.invalid_date + skipped.other} other."
            )
            if self.skip_reasons:
                message += "\nFirst few issues:\n" + "\n".join(self.skip_reasons)

        if self.cancelled:
            message += " Import cancelled; rides imported before cancelling were kept."
        if self.aborted_reason:
            message += f" Import stopped early: {self.aborted_reason}"
        if self.imported:
            message += " Imported rides are unclassified until you assign a zone."
        if self.suggested_ftp:
            message += f" intervals.icu estimates your FTP at {self.suggested_ftp}W."
        return message

    def absorb(self, reconciled: ReconcileResult) -> None:
        self.accepted.extend(reconciled.accepted)
        for name, value in vars(reconciled.skipped).items():
            setattr(self.skipped, name, getattr(self.skipped, name) + value)
        for reason in reconciled.skip_reasons:
            if len(self.skip_reasons) < MAX_SKIP_REASONS:
                self.skip_reasons.append(reason)


def is_cycling(activity: dict) -> bool:
    """True when the activity has no type or a cycling type."""
    activity_type = (activity.get("type") or "").replace(" ", "").lower()
    return not activity_type or activity_type in CYCLING_TYPES


class ActivityImportService:
    """Runs imports into a TrainingStore, one at a time."""

    def __init__(self, store: TrainingStore):
        self.store = store
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def import_candidates(self, candidates: Iterable[ImportCandidate]) -> ImportResult:
        """Reconcile already-parsed candidates (CSV rows, pasted JSON) and commit them."""
        if self.is_running:
            raise ImportInProgressError()
        candidates = list(candidates)
        reconciled = import_records(candidates, self.store.history, self.store.ftp)
        result = ImportResult(total=len(candidates))
        self._commit(result, reconciled)
        return result

    def _commit(self, result: ImportResult, batch: ReconcileResult) -> None:
        result.absorb(batch)
        added = self.store.add_imported(result.accepted)
        dropped = len(result.accepted) - len(added)
        if dropped:
            # Logged by hand while the batch was running
            result.skipped.duplicate += dropped
            result.accepted = added

    async def import_from_intervals(
        self,
        client: IntervalsClient,
        oldest: str,
        cancel_event: Optional[asyncio.Event] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> ImportResult:
        """
        Fetch rides from intervals.icu and stage them unclassified.

        Raises:
            ImportInProgressError: If another import is running
            IntegrationError: If the activity list itself cannot be fetched
        """
        if self.is_running:
            raise ImportInProgressError()

        async with self._lock:
            summaries = await client.list_activities(oldest=oldest)
            logger.info("Found %d activities since %s", len(summaries), oldest)

            result = ImportResult(total=len(summaries))
            batch = ReconcileResult()
            ftp = self.store.ftp
            eftps: List[float] = []

            try:
                for index, summary in enumerate(summaries):
                    if cancel_event is not None and cancel_event.is_set():
                        result.cancelled = True
                        logger.info("Import cancelled after %d of %d activities", index, len(summaries))
                        break
                    if progress is not None:
                        progress(index + 1, len(summaries))

                    if not is_cycling(summary):
                        batch.skipped.other += 1
                        continue

                    activity_id = summary.get("id")
                    try:
                        activity = await client.get_activity(activity_id)
                    except (AuthenticationError, RateLimitError) as e:
                        result.aborted_reason = str(e)
                        logger.warning("Stopping import: %s", e)
                        break
                    except IntegrationError as e:
                        batch.skipped.fetch_error += 1
                        batch.note(f"Activity {activity_id} - fetch failed ({e})")
                        logger.warning("Fetch failed for activity %s: %s", activity_id, e)
                        continue

                    eftp = activity_eftp(activity)
                    if eftp:
                        eftps.append(eftp)

                    # Re-read so rides logged during the import count as duplicates
                    seen = self.store.history + batch.accepted
                    reconcile_candidate(normalize_activity(activity), seen, ftp, batch)
            finally:
                self._commit(result, batch)

            if eftps:
                latest = round(eftps[-1])
                if latest != ftp:
                    result.suggested_ftp = latest

            logger.info(result.summary())
            return result
