"""
Timing resolver.

Reference timing is declared per route as a range string ("1-2") plus a unit.
Two readings are supported:

- average minutes: mean of the range, used for "is this still active" checks
- chart hours: maximum of the range, used for intensity curves so the rendered
  high-intensity window is the longest plausible one
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Tuple

from dosejournal.models.experience import Experience, Ingestion
from dosejournal.models.substance import Timing, TimingValue

if TYPE_CHECKING:
    from dosejournal.engine.library import SubstanceLibrary

PHASES = ("onset", "duration", "aftereffects")
DEFAULT_ACTIVE_MINUTES = 60
# Approximation of 1/60 used for minute-denominated chart timings
MINUTES_TO_HOURS = 0.016
MAX_TIER = 5


def parse_range(value: Optional[str]) -> List[float]:
    """Split "min-max" or "n" into numbers. Missing or unparsable -> [0]."""
    if not value:
        return [0.0]
    try:
        parts = [float(part) for part in str(value).split("-") if part.strip()]
    except ValueError:
        return [0.0]
    return parts or [0.0]


def average_minutes(phase: Optional[TimingValue]) -> float:
    """Mean of the range in minutes. Hours are scaled by 60, anything else is minutes."""
    if phase is None or not phase.value:
        return 0.0
    parts = parse_range(phase.value)
    avg = (parts[0] + parts[1]) / 2 if len(parts) > 1 else parts[0]
    if phase.unit == "hours":
        return avg * 60
    return avg


def _hours_multiplier(unit: Optional[str]) -> float:
    return 1.0 if unit == "hours" else MINUTES_TO_HOURS


def max_hours(phase: Optional[TimingValue]) -> float:
    """Maximum of the range in hours, rounded to one decimal."""
    if phase is None:
        return 0.0
    return round(max(parse_range(phase.value)) * _hours_multiplier(phase.unit), 1)


def min_hours(phase: Optional[TimingValue]) -> float:
    if phase is None:
        return 0.0
    return round(min(parse_range(phase.value)) * _hours_multiplier(phase.unit), 1)


def aftereffects_hours(phase: Optional[TimingValue], tier: int) -> float:
    """
    After-effects start from the minimum of the range and move towards the
    maximum in fifths as the dose tier increases.
    """
    low = min_hours(phase)
    diff = max(0.0, max_hours(phase) - low)
    return low + (diff / MAX_TIER) * tier


def resolve_routes(timing: Timing, route: Optional[str]) -> List[str]:
    """The ingestion's route when declared, otherwise every declared route."""
    declared = timing.routes()
    route = (route or "").lower()
    if route and route in declared:
        return [route]
    return declared


def chart_timings(timing: Timing, route: str, tier: int) -> Tuple[float, float, float]:
    """(onset, peak, after-effects) hours for one route of a substance."""
    onset = max_hours(timing.onset.get(route))
    peak = max_hours(timing.duration.get(route))
    after = aftereffects_hours(timing.aftereffects.get(route), tier)
    return onset, peak, after


def total_active_minutes(
    timing: Optional[Timing],
    route: Optional[str],
    default_minutes: float = DEFAULT_ACTIVE_MINUTES,
) -> float:
    """
    Sum of average onset, duration and after-effects minutes for a route.

    An undeclared route takes the longest declared route.
    """
    if timing is None or timing.is_empty():
        return float(default_minutes)
    return max(
        sum(average_minutes(getattr(timing, phase).get(r)) for phase in PHASES)
        for r in resolve_routes(timing, route)
    )


@dataclass
class IngestionWindow:
    """When an ingestion starts and stops being active (epoch ms)."""
    start: int
    end: int
    total_minutes: float

    def contains(self, moment: int) -> bool:
        return self.start <= moment <= self.end

    def to_dict(self) -> dict:
        return {
            "start": self.start,
            "end": self.end,
            "total_minutes": self.total_minutes,
        }


def active_window(
    ingestion: Ingestion,
    library: "SubstanceLibrary",
    default_minutes: float = DEFAULT_ACTIVE_MINUTES,
) -> IngestionWindow:
    record = library.get(ingestion.substance_name)
    start = ingestion.started_at(0)
    timing = record.timing if record else None
    minutes = total_active_minutes(timing, ingestion.administration_route, default_minutes)
    return IngestionWindow(
        start=start,
        end=start + int(minutes * 60 * 1000),
        total_minutes=minutes,
    )


def is_active(
    ingestion: Ingestion,
    library: "SubstanceLibrary",
    now: int,
    default_minutes: float = DEFAULT_ACTIVE_MINUTES,
) -> bool:
    return active_window(ingestion, library, default_minutes).contains(now)


@dataclass
class ExperienceTimeline:
    start: int
    end: int
    duration: int
    elapsed: int
    remaining: int
    progress: float

    def to_dict(self) -> dict:
        return {
            "start": self.start,
            "end": self.end,
            "duration": self.duration,
            "elapsed": self.elapsed,
            "remaining": self.remaining,
            "progress": self.progress,
        }


def experience_timeline(
    experience: Experience,
    library: "SubstanceLibrary",
    now: int,
    default_minutes: float = DEFAULT_ACTIVE_MINUTES,
) -> Optional[ExperienceTimeline]:
    """
    Overall window of an experience, from its first ingestion to the end of
    its longest-running one, using chart-hours timings. Unknown substances
    count for `default_minutes`.
    """
    if not experience.ingestions:
        return None

    windows = []
    for ingestion in experience.ingestions:
        start = ingestion.started_at(experience.timestamp)
        record = library.get(ingestion.substance_name)
        if record is None or record.timing.is_empty():
            windows.append((start, start + int(default_minutes * 60 * 1000)))
            continue
        # Lowest tier keeps after-effects at the minimum of their range
        hours = max(
            sum(chart_timings(record.timing, route, tier=0))
            for route in resolve_routes(record.timing, ingestion.administration_route)
        )
        windows.append((start, start + int(hours * 60 * 60 * 1000)))

    start = min(w[0] for w in windows)
    end = max(w[1] for w in windows)
    duration = end - start
    if duration <= 0:
        return ExperienceTimeline(start, end, 0, 0, 0, 1.0)

    elapsed = now - start
    progress = min(1.0, max(0.0, elapsed / duration))
    return ExperienceTimeline(
        start=start,
        end=end,
        duration=duration,
        elapsed=elapsed,
        remaining=end - now,
        progress=progress,
    )
