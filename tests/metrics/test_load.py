"""Tests for TSS and CTL/ATL/TSB calculations."""

import random
from datetime import timedelta

import pytest

from ride_progression.metrics.load import (
    ATL_ALPHA,
    CTL_ALPHA,
    TrainingLoads,
    calculate_intensity_factor,
    calculate_training_loads,
    calculate_tss,
    daily_tss,
    load_series,
)


class TestTSSCalculation:
    """Tests for Training Stress Score from power."""

    def test_one_hour_at_ftp_is_100(self):
        """One hour at FTP should give exactly 100 TSS."""
        assert calculate_tss(235, 60, 235) == 100

    def test_below_ftp(self):
        assert calculate_tss(200, 60, 250) == 64

    def test_rounds_to_integer(self):
        tss = calculate_tss(228, 90, 235)
        assert isinstance(tss, int)
        assert tss == 141

    def test_scales_linearly_with_duration(self):
        assert calculate_tss(235, 120, 235) == 2 * calculate_tss(235, 60, 235)

    @pytest.mark.parametrize(
        "np,duration,ftp",
        [(0, 60, 235), (200, 0, 235), (200, 60, 0), (-5, 60, 235)],
    )
    def test_invalid_inputs_give_zero(self, np, duration, ftp):
        assert calculate_tss(np, duration, ftp) == 0


class TestIntensityFactor:
    def test_above_threshold_not_clamped(self):
        assert calculate_intensity_factor(280, 235) > 1.19

    def test_zero_ftp(self):
        assert calculate_intensity_factor(200, 0) == 0.0


class TestTrainingLoads:
    """Tests for the EWMA walk over the ride history."""

    def test_empty_history_is_all_zero(self, today):
        loads = calculate_training_loads([], today)
        assert loads == TrainingLoads(0, 0, 0, 0, 0)

    def test_single_ride_today(self, make_record, today):
        """One 100 TSS ride today: CTL = 100 * 2/43, ATL = 100 * 2/8."""
        loads = calculate_training_loads([make_record(days_ago=0, tss=100)], today)

        assert loads.ctl == 5
        assert loads.atl == 25
        assert loads.tsb == -20
        assert loads.weekly_tss == 100
        assert loads.prev_weekly_tss == 0

    def test_loads_decay_across_gap(self, make_record, today):
        """A ride 41 days ago has nearly decayed out of both averages."""
        loads = calculate_training_loads([make_record(days_ago=41, tss=100)], today)

        assert 0 <= loads.ctl <= 1
        assert loads.atl == 0
        assert loads.weekly_tss == 0

    def test_ctl_responds_slower_than_atl(self, make_record, today):
        history = [make_record(days_ago=days, tss=80) for days in range(5)]
        loads = calculate_training_loads(history, today)
        assert loads.atl > loads.ctl
        assert loads.tsb < 0

    def test_order_independent(self, make_record, today):
        history = [make_record(days_ago=days, tss=10 * days + 5) for days in range(0, 60, 3)]
        shuffled = list(history)
        random.Random(7).shuffle(shuffled)

        assert calculate_training_loads(history, today) == calculate_training_loads(shuffled, today)

    def test_weekly_windows_are_disjoint(self, make_record, today):
        """Current week is today-6..today, previous week today-13..today-7."""
        history = [
            make_record(days_ago=0, tss=10),
            make_record(days_ago=6, tss=20),
            make_record(days_ago=7, tss=30),
            make_record(days_ago=13, tss=40),
            make_record(days_ago=14, tss=50),
        ]
        loads = calculate_training_loads(history, today)

        assert loads.weekly_tss == 30
        assert loads.prev_weekly_tss == 70

    def test_invalid_dates_skipped(self, make_record, today):
        history = [
            make_record(days_ago=0, tss=100),
            make_record(record_date="not-a-date", tss=500),
        ]
        assert calculate_training_loads(history, today).weekly_tss == 100

    def test_unclassified_rides_count(self, make_record, today):
        loads = calculate_training_loads([make_record(tss=100, classified=False)], today)
        assert loads.weekly_tss == 100

    def test_week_change_pct(self):
        assert TrainingLoads(weekly_tss=150, prev_weekly_tss=100).week_change_pct == pytest.approx(50.0)
        assert TrainingLoads(weekly_tss=150, prev_weekly_tss=0).week_change_pct is None

    def test_to_dict_keys(self):
        assert set(TrainingLoads().to_dict()) == {"ctl", "atl", "tsb", "weeklyTSS", "prevWeeklyTSS"}


class TestLoadSeries:
    def test_one_entry_per_day(self, make_record, today):
        series = load_series([make_record(days_ago=9, tss=60)], today)

        assert len(series) == 10
        assert series[0].date == today - timedelta(days=9)
        assert series[-1].date == today
        assert series[0].ctl == round(60 * CTL_ALPHA, 1)
        assert series[0].atl == round(60 * ATL_ALPHA, 1)
        assert all(day.tss == 0 for day in series[1:])

    def test_same_day_rides_summed(self, make_record):
        history = [make_record(days_ago=2, tss=40), make_record(days_ago=2, tss=25)]
        assert list(daily_tss(history).values()) == [65]
