"""Training metrics: zones, load and progression."""

from .load import (
    DailyLoad,
    TrainingLoads,
    calculate_intensity_factor,
    calculate_training_loads,
    calculate_tss,
    daily_tss,
    load_series,
)
from .progression import (
    apply_workout,
    calculate_new_level,
    describe_change,
)
from .zones import (
    ZONES,
    PowerRange,
    Zone,
    classify,
    default_levels,
    get_zone,
    get_zone_name,
    power_range,
    progression_zones,
    zone_ranges,
)

__all__ = [
    # Load
    "DailyLoad",
    "TrainingLoads",
    "calculate_intensity_factor",
    "calculate_training_loads",
    "calculate_tss",
    "daily_tss",
    "load_series",
    # Progression
    "apply_workout",
    "calculate_new_level",
    "describe_change",
    # Zones
    "ZONES",
    "PowerRange",
    "Zone",
    "classify",
    "default_levels",
    "get_zone",
    "get_zone_name",
    "power_range",
    "progression_zones",
    "zone_ranges",
]
