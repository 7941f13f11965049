"""
ride-progression: personal cycling training tracker.

Tracks per-zone progression levels, training load (TSS, CTL, ATL, TSB),
rule-based coaching insights, ride import from intervals.icu or CSV, and
last-write-wins backup to Google Drive.
"""

__version__ = "0.1.0"

from .metrics import calculate_new_level, calculate_training_loads, calculate_tss, classify
from .models import Snapshot, WorkoutRecord
from .services import TrainingStore

__all__ = [
    "__version__",
    "calculate_new_level",
    "calculate_training_loads",
    "calculate_tss",
    "classify",
    "Snapshot",
    "WorkoutRecord",
    "TrainingStore",
]
