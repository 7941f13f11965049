"""Power training zones for progression tracking.

Zones are defined as fractions of FTP, so the whole table can be re-derived
from a single FTP value. Lower bounds are inclusive, upper bounds exclusive,
and the top zone is open-ended.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..exceptions import ValidationError


@dataclass(frozen=True)
class Zone:
    """A training zone expressed relative to FTP."""

    id: str
    name: str
    color: str
    min_fraction: float
    max_fraction: Optional[float]  # None for the open-ended top zone
    tracks_progression: bool = True


@dataclass(frozen=True)
class PowerRange:
    """Absolute watt range for a zone at a given FTP."""

    min: int
    max: Optional[int]  # None means no upper bound

    def contains(self, watts: float) -> bool:
        if watts < self.min:
            return False
        return self.max is None or watts < self.max

    def to_dict(self) -> dict:
        return {"min": self.min, "max": self.max}

    def format(self) -> str:
        if self.max is None:
            return f"{self.min}W+"
        return f"{self.min}-{self.max}W"


# Ordered from lowest to highest intensity. At FTP 235 the boundaries land on
# 165/195/220/235/280W.
ZONES: List[Zone] = [
    Zone("recovery", "Recovery", "#9CA3AF", 0.0, 0.55, tracks_progression=False),
    Zone("endurance", "Endurance", "#3B82F6", 0.55, 0.70),
    Zone("tempo", "Tempo", "#22C55E", 0.70, 0.83),
    Zone("sweetspot", "Sweet Spot", "#EAB308", 0.83, 0.935),
    Zone("threshold", "Threshold", "#F97316", 0.935, 1.00),
    Zone("vo2max", "VO2max", "#EF4444", 1.00, 1.19),
    Zone("anaerobic", "Anaerobic", "#8B5CF6", 1.19, None),
]

_ZONES_BY_ID: Dict[str, Zone] = {zone.id: zone for zone in ZONES}

RECOVERY_ZONE_ID = "recovery"

MIN_LEVEL = 1.0
MAX_LEVEL = 10.0


def round_half_up(value: float) -> int:
    """Round .5 up, so 164.5W is 165W and a 72.5 TSS ride shows as 73."""
    return int(math.floor(value + 0.5))


def _require_ftp(ftp: float) -> None:
    if ftp is None or ftp <= 0:
        raise ValidationError(f"FTP must be positive, got {ftp}", field="ftp")


def get_zone(zone_id: str) -> Zone:
    """
    Look up a zone by identifier.

    Raises:
        ValidationError: If the zone is unknown
    """
    zone = _ZONES_BY_ID.get(zone_id)
    if zone is None:
        raise ValidationError(f"Unknown zone '{zone_id}'", field="zone")
    return zone


def is_known_zone(zone_id: Optional[str]) -> bool:
    return zone_id in _ZONES_BY_ID


def zone_rank(zone_id: str) -> int:
    """Intensity rank of a zone, 0 for the lowest."""
    return ZONES.index(get_zone(zone_id))


def get_zone_name(zone_id: Optional[str]) -> str:
    """Display name for a zone id, falling back to the raw id."""
    if zone_id is None:
        return "Unclassified"
    zone = _ZONES_BY_ID.get(zone_id)
    return zone.name if zone else zone_id


def progression_zones() -> List[Zone]:
    """Zones that carry a progression level (everything except recovery)."""
    return [zone for zone in ZONES if zone.tracks_progression]


def tracks_progression(zone_id: str) -> bool:
    return get_zone(zone_id).tracks_progression


def default_levels() -> Dict[str, float]:
    """Starting level for every progression zone."""
    return {zone.id: MIN_LEVEL for zone in progression_zones()}


def power_range(zone_id: str, ftp: float) -> PowerRange:
    """
    Calculate the watt range for a zone.

    Args:
        zone_id: Zone identifier
        ftp: Functional Threshold Power in watts

    Returns:
        PowerRange with an open upper bound for the top zone
    """
    _require_ftp(ftp)
    zone = get_zone(zone_id)
    upper = None if zone.max_fraction is None else round_half_up(ftp * zone.max_fraction)
    return PowerRange(min=round_half_up(ftp * zone.min_fraction), max=upper)


def zone_ranges(ftp: float) -> Dict[str, PowerRange]:
    """Re-derive every zone's watt range from FTP."""
    return {zone.id: power_range(zone.id, ftp) for zone in ZONES}


def classify(avg_watts: float, ftp: float) -> str:
    """
    Classify a power value into a zone.

    Scans from the highest zone down and returns the first zone whose lower
    bound the wattage meets. Anything below every bound lands in the lowest
    zone.

    Args:
        avg_watts: Average or normalized power in watts
        ftp: Functional Threshold Power in watts

    Returns:
        Zone identifier
    """
    _require_ftp(ftp)
    for zone in reversed(ZONES):
        if avg_watts >= power_range(zone.id, ftp).min:
            return zone.id
    return ZONES[0].id


def format_zones(ftp: float) -> str:
    """One-line zone summary, e.g. for the CLI status panel."""
    return ", ".join(
        f"{zone.name}: {power_range(zone.id, ftp).format()}" for zone in ZONES
    )
