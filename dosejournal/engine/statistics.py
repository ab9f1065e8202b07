"""
Usage statistics over the experience journal: per-substance frequency and
cumulative dose, plus the "trophy stand" of most-used substances per window.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from dosejournal.engine.mass import InvalidMassFormat, Mass
from dosejournal.models.experience import Experience

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
YEAR_DAYS = 365
MONTH_DAYS = 30


@dataclass
class SubstanceUsage:
    name: str
    count: int
    cumulative_dose: Mass

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "count": self.count,
            "cumulative_dose": self.cumulative_dose.to_display_string(),
        }


@dataclass
class TopSubstance:
    substance: str
    count: int

    def to_dict(self) -> dict:
        return {"substance": self.substance, "count": self.count}


@dataclass
class TopSubstances:
    all_time: Optional[TopSubstance]
    year: Optional[TopSubstance]
    month: Optional[TopSubstance]

    def to_dict(self) -> dict:
        return {
            "all_time": self.all_time.to_dict() if self.all_time else None,
            "year": self.year.to_dict() if self.year else None,
            "month": self.month.to_dict() if self.month else None,
        }


@dataclass
class UsageStatistics:
    ranked: List[SubstanceUsage]
    top: TopSubstances

    def to_dict(self) -> dict:
        return {
            "ranked": [u.to_dict() for u in self.ranked],
            "top": self.top.to_dict(),
        }


def find_top_substance(counts: Dict[str, int]) -> Optional[TopSubstance]:
    """Highest count wins; ties go to the substance counted first."""
    top = None
    max_count = 0
    for substance, count in counts.items():
        if count > max_count:
            max_count = count
            top = substance
    if top is None:
        return None
    return TopSubstance(substance=top, count=max_count)


def compute_statistics(
    experiences: List[Experience],
    now: int,
    year_days: int = YEAR_DAYS,
    month_days: int = MONTH_DAYS,
) -> UsageStatistics:
    """
    Fold the journal into usage statistics.

    A malformed dose is left out of the cumulative total but the ingestion
    still counts towards frequency.
    """
    all_time_counts: Dict[str, int] = {}
    year_counts: Dict[str, int] = {}
    month_counts: Dict[str, int] = {}
    doses: Dict[str, Mass] = {}

    one_year_ago = now - year_days * DAY_MS
    one_month_ago = now - month_days * DAY_MS

    for experience in experiences:
        for ingestion in experience.ingestions:
            name = ingestion.substance_name
            timestamp = ingestion.time or experience.sort_date or experience.creation_date

            all_time_counts[name] = all_time_counts.get(name, 0) + 1
            if name not in doses:
                doses[name] = Mass.zero()

            if ingestion.dose is not None:
                try:
                    doses[name].add(ingestion.mass)
                except InvalidMassFormat as e:
                    logger.warning(f"Skipping dose for {name} in '{experience.title}': {e}")

            if timestamp > one_year_ago:
                year_counts[name] = year_counts.get(name, 0) + 1
            if timestamp > one_month_ago:
                month_counts[name] = month_counts.get(name, 0) + 1

    ranked = sorted(
        (
            SubstanceUsage(name=name, count=count, cumulative_dose=doses[name])
            for name, count in all_time_counts.items()
        ),
        key=lambda usage: usage.count,
        reverse=True,
    )

    return UsageStatistics(
        ranked=ranked,
        top=TopSubstances(
            all_time=find_top_substance(all_time_counts),
            year=find_top_substance(year_counts),
            month=find_top_substance(month_counts),
        ),
    )


@dataclass
class CumulativeDose:
    total: Mass
    units: str
    route: str

    def to_dict(self) -> dict:
        return {
            "total": self.total.to_display_string(),
            "units": self.units,
            "route": self.route,
        }


def cumulative_doses(experience: Experience) -> Dict[str, CumulativeDose]:
    """Running dose total per substance within one experience."""
    totals: Dict[str, CumulativeDose] = {}
    for ingestion in experience.ingestions:
        name = ingestion.substance_name
        if name not in totals:
            totals[name] = CumulativeDose(
                total=Mass.zero(),
                units=ingestion.units or "units",
                route=ingestion.administration_route or "Unknown",
            )
        if ingestion.dose is None:
            continue
        try:
            totals[name].total.add(ingestion.mass)
        except InvalidMassFormat as e:
            logger.warning(f"Skipping dose for {name} in '{experience.title}': {e}")
    return totals
