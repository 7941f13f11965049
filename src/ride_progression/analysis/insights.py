"""Rule-based training insights.

Each rule reads the current loads, the ride history or the progression
levels and appends at most one message. Rules never suppress each other and
the output order is the rule order, not severity, so the list reads the same
way every time and can be pasted into an external analysis tool as-is.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Dict, List, Optional

from ..metrics.load import TrainingLoads
from ..models.workouts import WorkoutRecord

FREQUENCY_WINDOW_DAYS = 14
MIN_SESSIONS_PER_FORTNIGHT = 4

DISTRIBUTION_WINDOW_DAYS = 28
MIN_SESSIONS_FOR_DISTRIBUTION = 8
MIN_ENDURANCE_SESSIONS = 2
MAX_HIGH_INTENSITY_SHARE = 0.5
HIGH_INTENSITY_ZONES = ("vo2max", "anaerobic")


class InsightSeverity(str, Enum):
    INFO = "info"
    CAUTION = "caution"
    WARNING = "warning"
    POSITIVE = "positive"


@dataclass(frozen=True)
class Insight:
    """One advisory message."""

    severity: InsightSeverity
    message: str

    def to_dict(self) -> dict:
        return {"type": self.severity.value, "message": self.message}


def _recent(history: List[WorkoutRecord], today: date, days: int) -> List[WorkoutRecord]:
    """Rides dated within the trailing ``days`` window, today included."""
    oldest = today - timedelta(days=days - 1)
    recent = []
    for record in history:
        record_date = record.parsed_date
        if record_date is not None and oldest <= record_date <= today:
            recent.append(record)
    return recent


def _form_insight(loads: TrainingLoads) -> Optional[Insight]:
    tsb = loads.tsb
    if tsb < -25:
        return Insight(
            InsightSeverity.WARNING,
            "TSB below -25: High fatigue accumulation. Consider extra recovery or reducing intensity.",
        )
    if tsb < -15:
        return Insight(
            InsightSeverity.CAUTION,
            "TSB below -15: Significant fatigue. Monitor for signs of overreaching.",
        )
    if tsb > 25:
        return Insight(
            InsightSeverity.INFO,
            "TSB above +25: Very fresh but fitness may be declining. Consider adding training stimulus.",
        )
    if 5 <= tsb <= 20:
        return Insight(
            InsightSeverity.POSITIVE,
            "TSB in optimal fresh range (+5 to +20): Good form for hard efforts or events.",
        )
    return None


def _load_spike_insight(loads: TrainingLoads) -> Optional[Insight]:
    if loads.atl > loads.ctl + 20:
        return Insight(
            InsightSeverity.WARNING,
            "ATL exceeds CTL by 20+: Acute load spike. Risk of burnout if sustained.",
        )
    if loads.atl > loads.ctl + 10:
        return Insight(
            InsightSeverity.CAUTION,
            "ATL exceeds CTL by 10+: Building load aggressively. Ensure adequate recovery.",
        )
    return None


def _weekly_change_insight(loads: TrainingLoads) -> Optional[Insight]:
    week_change = loads.week_change_pct
    if week_change is None:
        return None
    if week_change < -40:
        return Insight(
            InsightSeverity.INFO,
            f"Weekly TSS down {abs(round(week_change))}% from last week. Recovery week or missed sessions?",
        )
    if week_change > 30:
        return Insight(
            InsightSeverity.CAUTION,
            f"Weekly TSS up {round(week_change)}% from last week. Large jump, monitor fatigue.",
        )
    return None


def _fitness_insight(loads: TrainingLoads) -> Optional[Insight]:
    ctl = loads.ctl
    if ctl < 30:
        return Insight(
            InsightSeverity.INFO,
            "CTL below 30: Early base building phase. Focus on consistency.",
        )
    if 70 <= ctl < 85:
        return Insight(
            InsightSeverity.POSITIVE,
            "CTL 70-85: Solid fitness base. On track for event readiness.",
        )
    if ctl >= 85:
        return Insight(
            InsightSeverity.POSITIVE,
            "CTL 85+: Strong fitness. Maintain and begin considering taper timing.",
        )
    return None


def _frequency_insight(history: List[WorkoutRecord], today: date) -> Optional[Insight]:
    count = len(_recent(history, today, FREQUENCY_WINDOW_DAYS))
    if count < MIN_SESSIONS_PER_FORTNIGHT:
        return Insight(
            InsightSeverity.CAUTION,
            f"Only {count} workouts in last {FREQUENCY_WINDOW_DAYS} days. Consistency is key for adaptation.",
        )
    return None


def _distribution_insights(history: List[WorkoutRecord], today: date) -> List[Insight]:
    recent = _recent(history, today, DISTRIBUTION_WINDOW_DAYS)
    if len(recent) < MIN_SESSIONS_FOR_DISTRIBUTION:
        return []

    # Unclassified rides count toward the total but toward no zone
    per_zone = Counter(record.zone for record in recent if record.zone)
    insights = []
    if per_zone["endurance"] < MIN_ENDURANCE_SESSIONS:
        insights.append(Insight(
            InsightSeverity.CAUTION,
            "Low endurance work in last 28 days. Z2 base supports all other adaptations.",
        ))
    high_intensity = sum(per_zone[zone] for zone in HIGH_INTENSITY_ZONES)
    if high_intensity > len(recent) * MAX_HIGH_INTENSITY_SHARE:
        insights.append(Insight(
            InsightSeverity.CAUTION,
            "High-intensity work exceeds 50% of sessions. Risk of burnout without adequate base.",
        ))
    return insights


def _level_insights(levels: Dict[str, float], loads: TrainingLoads) -> List[Insight]:
    insights = []
    if levels:
        avg_level = sum(levels.values()) / len(levels)
        if levels.get("threshold", avg_level) < avg_level - 1.5:
            insights.append(Insight(
                InsightSeverity.INFO,
                "Threshold level lagging behind other zones. Consider adding FTP-focused work.",
            ))
    if levels.get("endurance", 10.0) < 2 and loads.ctl > 40:
        insights.append(Insight(
            InsightSeverity.INFO,
            "Endurance level low relative to fitness. Longer Z2 rides would help.",
        ))
    return insights


def generate_insights(
    loads: TrainingLoads,
    history: List[WorkoutRecord],
    levels: Dict[str, float],
    today: Optional[date] = None,
) -> List[Insight]:
    """
    Evaluate every rule and collect the triggered insights.

    Args:
        loads: Current training loads
        history: Full ride history
        levels: Current progression level per zone
        today: Reference date for the trailing windows (defaults to today)

    Returns:
        Insights in rule order
    """
    today = today or date.today()
    insights: List[Insight] = []

    for rule in (_form_insight, _load_spike_insight, _weekly_change_insight, _fitness_insight):
        insight = rule(loads)
        if insight is not None:
            insights.append(insight)

    frequency = _frequency_insight(history, today)
    if frequency is not None:
        insights.append(frequency)

    insights.extend(_distribution_insights(history, today))
    insights.extend(_level_insights(levels, loads))
    return insights
