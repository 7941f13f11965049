"""Per-zone progression levels.

A zone's level (1.0 - 10.0) rises when the athlete completes sessions at or
above it, faster when the perceived exertion shows headroom, and drops only
when a session that should have been manageable is not finished.
"""

from typing import Dict, Optional

from ..models.workouts import Progression
from .zones import MAX_LEVEL, MIN_LEVEL, tracks_progression

FAILED_SESSION_PENALTY = 0.5


def _cap(level: float) -> float:
    # Two decimals keep repeated 0.1 steps from drifting
    return round(min(MAX_LEVEL, max(MIN_LEVEL, level)), 2)


def calculate_new_level(
    current_level: float,
    workout_level: float,
    rpe: Optional[int],
    completed: bool,
) -> float:
    """
    Calculate a zone's next level after one workout.

    Args:
        current_level: The zone's level before the workout
        workout_level: Difficulty rating of the session (1-10)
        rpe: Rate of perceived exertion (1-10). Only read for completed
             sessions; a missing value is treated as a moderate 5.
        completed: Whether the session was finished

    Returns:
        New level, always within [1.0, 10.0]
    """
    if not completed:
        if workout_level <= current_level:
            return _cap(current_level - FAILED_SESSION_PENALTY)
        # Failing an above-level session is not penalized
        return _cap(current_level)

    rpe = 5 if rpe is None else rpe
    difficulty = workout_level - current_level

    if difficulty <= -2:
        gain = 0.0
    elif difficulty <= 0:
        gain = 0.1 if rpe <= 5 else 0.0
    elif difficulty <= 1:
        if rpe <= 6:
            gain = 0.5
        elif rpe <= 8:
            gain = 0.3
        else:
            gain = 0.1
    elif difficulty <= 2:
        if rpe <= 7:
            gain = 0.7
        elif rpe <= 9:
            gain = 0.4
        else:
            gain = 0.2
    else:
        gain = 1.0 if rpe <= 8 else 0.5

    return _cap(current_level + gain)


def apply_workout(
    levels: Dict[str, float],
    zone_id: str,
    workout_level: float,
    rpe: Optional[int],
    completed: bool,
) -> Optional[Progression]:
    """
    Run the progression rule for one workout and update ``levels`` in place.

    Recovery rides never touch any level.

    Returns:
        The Progression applied, or None for an exempt zone
    """
    if not tracks_progression(zone_id):
        return None

    previous_level = levels.get(zone_id, MIN_LEVEL)
    new_level = calculate_new_level(previous_level, workout_level, rpe, completed)
    levels[zone_id] = new_level
    return Progression.between(previous_level, new_level)


def describe_change(change: float) -> str:
    """Short label for a level change, shown after logging a workout."""
    if change >= 0.7:
        return "Breakthrough!"
    if change >= 0.4:
        return "Strong progress"
    if change >= 0.2:
        return "Solid work"
    if change > 0:
        return "Maintained"
    if change == 0:
        return "No change"
    return "Level adjusted down"
