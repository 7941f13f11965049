"""Markdown training summary for pasting into an external analysis tool."""

from datetime import date
from typing import Dict, List, Optional

from ..metrics.load import TrainingLoads
from ..metrics.zones import get_zone_name, progression_zones
from ..models.workouts import WorkoutRecord
from .insights import Insight

RECENT_WORKOUT_COUNT = 7


def _format_workout(record: WorkoutRecord) -> str:
    power = f"{record.normalized_power:.0f}W" if record.normalized_power else "n/a"
    tss = f"{record.tss:.0f}" if record.tss is not None else "n/a"
    rpe = record.rpe if record.rpe is not None else "n/a"
    line = (
        f"- {record.date}: {get_zone_name(record.zone)}, {record.duration}min, "
        f"NP {power}, TSS {tss}, RPE {rpe}"
    )
    if record.notes:
        line += f" ({record.notes})"
    return line


def build_analysis_report(
    loads: TrainingLoads,
    levels: Dict[str, float],
    history: List[WorkoutRecord],
    insights: Optional[List[Insight]] = None,
    today: Optional[date] = None,
) -> str:
    """
    Render loads, levels, recent rides and insights as markdown.

    ``history`` is expected newest first, as the store keeps it.
    """
    today = today or date.today()
    lines = [
        f"## Training Status - {today.isoformat()}",
        "",
        "**Training Loads:**",
        f"- CTL (Fitness): {loads.ctl}",
        f"- ATL (Fatigue): {loads.atl}",
        f"- TSB (Form): {loads.tsb}",
        f"- Weekly TSS: {loads.weekly_tss}",
        f"- Previous Week TSS: {loads.prev_weekly_tss}",
        "",
        "**Progression Levels:**",
    ]
    for zone in progression_zones():
        lines.append(f"- {zone.name}: {levels.get(zone.id, 1.0):.1f}")

    lines.extend(["", "**Recent Workouts:**"])
    recent = history[:RECENT_WORKOUT_COUNT]
    if recent:
        lines.extend(_format_workout(record) for record in recent)
    else:
        lines.append("- No workouts logged yet")

    if insights:
        lines.extend(["", "**Insights:**"])
        lines.extend(f"- [{insight.severity.value}] {insight.message}" for insight in insights)

    lines.extend(["", "Please analyze my current training status and provide personalized insights."])
    return "\n".join(lines)
