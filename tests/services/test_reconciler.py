"""Tests for merging imported activities into the history."""

from datetime import date

from ride_progression.models.workouts import ImportCandidate
from ride_progression.services.reconciler import (
    build_record,
    import_records,
    is_duplicate,
    merge_history,
    sort_history,
)


def _candidate(day="2025-03-10", np=200.0, **kwargs):
    kwargs.setdefault("duration", 60)
    kwargs.setdefault("source", "intervals.icu")
    return ImportCandidate(date=day, normalized_power=np, **kwargs)


class TestDuplicateDetection:
    """Same calendar day and normalized power within 5W."""

    def test_close_power_same_day_is_duplicate(self, make_record):
        history = [make_record(record_date="2025-03-10", normalized_power=200)]
        assert is_duplicate(date(2025, 3, 10), 203, history)

    def test_power_outside_tolerance(self, make_record):
        history = [make_record(record_date="2025-03-10", normalized_power=200)]
        assert not is_duplicate(date(2025, 3, 10), 210, history)
        assert not is_duplicate(date(2025, 3, 10), 205, history)

    def test_different_day_not_duplicate(self, make_record):
        history = [make_record(record_date="2025-03-10", normalized_power=200)]
        assert not is_duplicate(date(2025, 3, 11), 200, history)


class TestImportRecords:
    """Tests for batch reconciliation."""

    def test_accepted_records_are_unclassified(self):
        result = import_records([_candidate(name="Morning Ride", external_id="i42")], [], 235)

        record = result.accepted[0]
        assert record.classification is None
        assert record.zone is None
        assert record.date == "2025-03-10"
        assert record.notes == "Imported from intervals.icu: Morning Ride"
        assert record.extra == {"externalId": "i42"}

    def test_upstream_load_preferred(self):
        result = import_records([_candidate(tss=87.0)], [], 235)
        assert result.accepted[0].tss == 87.0

    def test_load_computed_when_missing(self):
        result = import_records([_candidate(np=235.0, tss=None)], [], 235)
        assert result.accepted[0].tss == 100.0

    def test_skip_categories(self, make_record):
        history = [make_record(record_date="2025-03-10", normalized_power=200)]
        candidates = [
            _candidate(np=None, name="Commute"),
            _candidate(np=0),
            _candidate(day="garbage"),
            _candidate(np=202),
            _candidate(np=250),
        ]
        result = import_records(candidates, history, 235)

        assert len(result.accepted) == 1
        assert result.skipped.no_power == 2
        assert result.skipped.invalid_date == 1
        assert result.skipped.duplicate == 1
        assert result.skipped.total == 4
        assert result.skip_reasons[0] == '"Commute" - no power data'

    def test_duplicates_within_batch(self):
        result = import_records([_candidate(np=200), _candidate(np=201)], [], 235)
        assert len(result.accepted) == 1
        assert result.skipped.duplicate == 1

    def test_skip_reasons_capped(self):
        result = import_records([_candidate(np=None) for _ in range(9)], [], 235)
        assert result.skipped.no_power == 9
        assert len(result.skip_reasons) == 5


class TestHistoryOrdering:
    def test_newest_first_invalid_last(self, make_record):
        old = make_record(record_date="2025-01-01")
        new = make_record(record_date="2025-03-01")
        broken = make_record(record_date="n/a")

        assert sort_history([broken, old, new]) == [new, old, broken]

    def test_merge_keeps_order(self, make_record):
        existing = [make_record(record_date="2025-03-05"), make_record(record_date="2025-02-01")]
        imported = [build_record(_candidate(day="2025-03-01"), 235)]

        merged = merge_history(existing, imported)
        assert [record.date for record in merged] == ["2025-03-05", "2025-03-01", "2025-02-01"]
