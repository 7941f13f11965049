"""Training load calculations (TSS, IF, CTL/ATL/TSB).

CTL and ATL use the EWMA smoothing factor alpha = 2 / (N + 1) with a
42-day and a 7-day window. The walk covers every calendar day from the
first ride to today, so rest days decay both averages.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from ..models.workouts import WorkoutRecord
from .zones import round_half_up

logger = logging.getLogger(__name__)

CTL_DAYS = 42
ATL_DAYS = 7
CTL_ALPHA = 2 / (CTL_DAYS + 1)
ATL_ALPHA = 2 / (ATL_DAYS + 1)

WEEK_DAYS = 7


def calculate_intensity_factor(normalized_power: float, ftp: float) -> float:
    """
    Calculate Intensity Factor (IF).

    IF = NP / FTP. Values above 1.0 are kept as-is (no clamping).

    Args:
        normalized_power: Normalized Power in watts
        ftp: Functional Threshold Power in watts

    Returns:
        Intensity Factor, or 0.0 when FTP is not positive
    """
    if ftp <= 0:
        return 0.0
    return normalized_power / ftp


def calculate_tss(normalized_power: float, duration_min: float, ftp: float) -> int:
    """
    Calculate Training Stress Score from power.

    A TSS of 100 is one hour at FTP. The score grows linearly with duration
    and with the square of intensity.

    Formula: TSS = (duration_min * NP * IF) / (FTP * 60) * 100

    Args:
        normalized_power: Normalized Power in watts
        duration_min: Ride duration in minutes
        ftp: Functional Threshold Power in watts

    Returns:
        TSS rounded to the nearest integer
    """
    if ftp <= 0 or duration_min <= 0 or normalized_power <= 0:
        return 0

    intensity_factor = normalized_power / ftp
    tss = (duration_min * normalized_power * intensity_factor) / (ftp * 60) * 100
    return round_half_up(tss)


@dataclass
class TrainingLoads:
    """Derived training load snapshot. Never stored, always recomputed."""

    ctl: int = 0
    atl: int = 0
    tsb: int = 0
    weekly_tss: int = 0
    prev_weekly_tss: int = 0

    @property
    def week_change_pct(self) -> Optional[float]:
        """Week-over-week TSS change in percent, None without a prior week."""
        if self.prev_weekly_tss <= 0:
            return None
        return (self.weekly_tss - self.prev_weekly_tss) / self.prev_weekly_tss * 100

    def to_dict(self) -> dict:
        return {
            "ctl": self.ctl,
            "atl": self.atl,
            "tsb": self.tsb,
            "weeklyTSS": self.weekly_tss,
            "prevWeeklyTSS": self.prev_weekly_tss,
        }


@dataclass
class DailyLoad:
    """One day of the CTL/ATL walk."""

    date: date
    tss: float
    ctl: float
    atl: float
    tsb: float

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "tss": self.tss,
            "ctl": self.ctl,
            "atl": self.atl,
            "tsb": self.tsb,
        }


def _dated_records(history: Iterable[WorkoutRecord]) -> List[tuple]:
    """Pair each record with its parsed date, dropping unparseable ones."""
    dated = []
    for record in history:
        record_date = record.parsed_date
        if record_date is None:
            logger.warning("Skipping workout %s with invalid date %r", record.id, record.date)
            continue
        dated.append((record_date, record))
    return dated


def daily_tss(history: Iterable[WorkoutRecord]) -> Dict[date, float]:
    """Total TSS per calendar day. Records without TSS count as zero."""
    totals: Dict[date, float] = defaultdict(float)
    for record_date, record in _dated_records(history):
        totals[record_date] += record.tss or 0
    return dict(totals)


def _walk(
    totals: Dict[date, float],
    today: date,
) -> Iterator[Tuple[date, float, float, float]]:
    """Yield (day, day_tss, ctl, atl) for every day from the first ride to today."""
    if not totals:
        return
    ctl = 0.0
    atl = 0.0
    current = min(totals)
    while current <= today:
        day_tss = totals.get(current, 0.0)
        ctl = ctl * (1 - CTL_ALPHA) + day_tss * CTL_ALPHA
        atl = atl * (1 - ATL_ALPHA) + day_tss * ATL_ALPHA
        yield current, day_tss, ctl, atl
        current += timedelta(days=1)


def load_series(
    history: Iterable[WorkoutRecord],
    today: Optional[date] = None,
) -> List[DailyLoad]:
    """
    Walk every day from the first ride through today.

    Days without rides are processed with zero load, so both averages decay
    across gaps.

    Args:
        history: Workout records in any order
        today: Last day of the walk (defaults to the current date)

    Returns:
        One DailyLoad per calendar day, oldest first
    """
    today = today or date.today()
    return [
        DailyLoad(
            date=day,
            tss=day_tss,
            ctl=round(ctl, 1),
            atl=round(atl, 1),
            tsb=round(ctl - atl, 1),
        )
        for day, day_tss, ctl, atl in _walk(daily_tss(history), today)
    ]


def window_tss(
    history: Iterable[WorkoutRecord],
    today: date,
    start_days_ago: int,
    end_days_ago: int,
) -> float:
    """Sum TSS for rides dated between ``start_days_ago`` and ``end_days_ago`` (inclusive)."""
    oldest = today - timedelta(days=start_days_ago)
    newest = today - timedelta(days=end_days_ago)
    return sum(
        record.tss or 0
        for record_date, record in _dated_records(history)
        if oldest <= record_date <= newest
    )


def calculate_training_loads(
    history: List[WorkoutRecord],
    today: Optional[date] = None,
) -> TrainingLoads:
    """
    Calculate CTL, ATL, TSB and weekly TSS totals from the full history.

    The current week is today and the six days before it. The previous week
    is the seven days before that, disjoint from the current week.

    Args:
        history: Workout records in any order
        today: Reference date (defaults to the current date)

    Returns:
        TrainingLoads with every value rounded to an integer
    """
    if not history:
        return TrainingLoads()

    today = today or date.today()
    ctl = 0.0
    atl = 0.0
    walk = list(_walk(daily_tss(history), today))
    if walk:
        _, _, ctl, atl = walk[-1]

    weekly = window_tss(history, today, WEEK_DAYS - 1, 0)
    prev_weekly = window_tss(history, today, 2 * WEEK_DAYS - 1, WEEK_DAYS)

    return TrainingLoads(
        ctl=round_half_up(ctl),
        atl=round_half_up(atl),
        tsb=round_half_up(ctl - atl),
        weekly_tss=round_half_up(weekly),
        prev_weekly_tss=round_half_up(prev_weekly),
    )
