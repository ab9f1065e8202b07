"""
Intensity curve generator.

Each ingestion becomes a four-point area-chart curve:
(0, 0) -> (onset, tier) -> (onset + peak, tier) -> (onset + peak + after, 0)
where times are hours and tier is the dose-tier intensity (0-5).
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Union

from dosejournal.engine.dosage import DEFAULT_TIER, classify_dose
from dosejournal.engine.mass import InvalidMassFormat, Mass
from dosejournal.engine.timing import chart_timings, resolve_routes
from dosejournal.models.experience import Experience, Ingestion
from dosejournal.models.substance import SubstanceRecord

if TYPE_CHECKING:
    from dosejournal.engine.library import SubstanceLibrary

logger = logging.getLogger(__name__)


@dataclass
class CurvePoint:
    time: float  # hours
    intensity: float  # tier 0-5

    def to_dict(self) -> dict:
        return {"time": self.time, "intensity": self.intensity}


@dataclass(frozen=True)
class BySubstanceName:
    """Curves for a substance with no specific dose or route."""
    name: str


@dataclass(frozen=True)
class ByIngestion:
    """Curve for one logged ingestion."""
    ingestion: Ingestion


CurveInput = Union[BySubstanceName, ByIngestion]


def curve_key(substance: str, route: str) -> str:
    return f"{substance.lower()}|{route}"


def build_curve(onset: float, peak: float, after: float, tier: int) -> List[CurvePoint]:
    return [
        CurvePoint(0, 0),
        CurvePoint(onset, tier),
        CurvePoint(onset + peak, tier),
        CurvePoint(onset + peak + after, 0),
    ]


def _dose_of(ingestion: Ingestion) -> Optional[Mass]:
    try:
        return ingestion.mass
    except InvalidMassFormat as e:
        logger.warning(f"Unreadable dose for {ingestion.substance_name}, using default tier: {e}")
        return None


def _route_curve(
    record: SubstanceRecord,
    route: str,
    dose: Optional[Mass],
) -> List[CurvePoint]:
    tier = classify_dose(dose, record.dosage_for(route)) if dose is not None else DEFAULT_TIER
    onset, peak, after = chart_timings(record.timing, route, tier)
    return build_curve(onset, peak, after, tier)


def generate_curves(
    curve_input: CurveInput,
    library: "SubstanceLibrary",
) -> Dict[str, List[CurvePoint]]:
    """
    Build intensity curves keyed by "<substance>|<route>".

    An ingestion on a declared route yields one curve. A blank or unknown
    route falls back to one curve per declared route. A substance with no
    timing data yields no curves at all.
    """
    if isinstance(curve_input, ByIngestion):
        name = curve_input.ingestion.substance_name
        dose = _dose_of(curve_input.ingestion)
        route = (curve_input.ingestion.administration_route or "").lower()
    elif isinstance(curve_input, BySubstanceName):
        name = curve_input.name
        dose = None
        route = ""
    else:
        raise TypeError(f"Unsupported curve input: {type(curve_input).__name__}")

    record = library.get(name)
    if record is None or record.timing.is_empty():
        logger.debug(f"No timing data for {name}, no curve generated")
        return {}

    return {
        curve_key(name, r): _route_curve(record, r, dose)
        for r in resolve_routes(record.timing, route)
    }


@dataclass
class SubstanceCurve:
    """A curve placed on an experience's time axis (hours from first ingestion)."""
    key: str
    substance: str
    route: str
    ingestion_index: int
    points: List[CurvePoint] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "substance": self.substance,
            "route": self.route,
            "ingestion_index": self.ingestion_index,
            "points": [p.to_dict() for p in self.points],
        }


def experience_curves(
    experience: Experience,
    library: "SubstanceLibrary",
) -> List[SubstanceCurve]:
    """Curves for every ingestion, offset by start time relative to the first ingestion."""
    if not experience.ingestions:
        return []

    starts = [i.started_at(experience.timestamp) for i in experience.ingestions]
    origin = min(starts)

    curves = []
    for index, (ingestion, start) in enumerate(zip(experience.ingestions, starts)):
        offset = (start - origin) / (60 * 60 * 1000)
        for key, points in generate_curves(ByIngestion(ingestion), library).items():
            curves.append(SubstanceCurve(
                key=key,
                substance=ingestion.substance_name,
                route=key.split("|", 1)[1],
                ingestion_index=index,
                points=[CurvePoint(round(p.time + offset, 3), p.intensity) for p in points],
            ))
    return curves
