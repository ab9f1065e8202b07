"""
Quick-add: a free-text entry like "mdma 100mg oral saturday night" becomes an
ingestion, either appended to the most recent experience or starting a new one.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from decimal import Decimal
from typing import List, Optional, Sequence, Union

from dosejournal.engine.mass import Mass, format_decimal
from dosejournal.models.experience import Experience, Ingestion, append_ingestion

logger = logging.getLogger(__name__)

DOSE_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)(m|mc|u|k)?g$", re.IGNORECASE)
TITLE_START = 3  # tokens from the fourth onward form the title
DEFAULT_WINDOW_HOURS = 24


@dataclass
class QuickAdd:
    substance: str
    dose: float
    units: str  # full unit, e.g. "mg"
    administration_route: str
    title: str = ""

    @property
    def mass(self) -> Mass:
        return Mass(f"{format_decimal(Decimal(str(self.dose)))}{self.units}")

    @property
    def forces_new_experience(self) -> bool:
        """A title ending in "|n..." (e.g. "Party|new") always starts a new experience."""
        # TODO: confirm with product whether a bare title starting with "n" (no "|")
        # should also force a new experience; it currently appends.
        if "|" not in self.title:
            return False
        return self.title.split("|")[-1].strip().lower().startswith("n")


@dataclass
class QuickAddParse:
    """Which parts of the query were recognised, and the entry once complete."""
    substance: bool = False
    dose: bool = False
    units: bool = False
    administration_route: bool = False
    title: bool = False
    entry: Optional[QuickAdd] = None

    @property
    def complete(self) -> bool:
        return self.entry is not None


def load_token_list(path: Union[str, Path], key: str) -> List[str]:
    """Load a `{"<key>": [...]}` token list such as substances.json or routes.json."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return list(data.get(key, []))


def _match(token: str, known: Sequence[str]) -> Optional[str]:
    lowered = token.lower()
    for candidate in known:
        if candidate.lower() == lowered:
            return candidate
    return None


def parse_quick_add(
    query: str,
    known_substances: Sequence[str],
    known_routes: Sequence[str],
) -> QuickAddParse:
    parts = (query or "").strip().split()
    result = QuickAddParse()
    substance = route = units = None
    dose = None

    for part in parts:
        dose_match = DOSE_PATTERN.match(part)
        if dose_match:
            dose = float(dose_match.group(1))
            units = (dose_match.group(2) or "").lower() + "g"
            result.dose = result.units = True

        matched_substance = _match(part, known_substances)
        if matched_substance:
            substance = matched_substance
            result.substance = True

        matched_route = _match(part, known_routes)
        if matched_route:
            route = matched_route
            result.administration_route = True

    title = ""
    if len(parts) > TITLE_START:
        title = " ".join(parts[TITLE_START:])
        result.title = True

    if substance and dose is not None and units and route:
        result.entry = QuickAdd(
            substance=substance,
            dose=dose,
            units=units,
            administration_route=route,
            title=title,
        )
    return result


@dataclass
class QuickAddPlan:
    """Outcome of applying a quick-add to the journal."""
    experiences: List[Experience]
    experience_id: str
    created: bool
    message: str = ""
    ingestion: Optional[Ingestion] = field(default=None, repr=False)


def most_recent_experience(experiences: List[Experience]) -> Optional[Experience]:
    """The experience whose latest ingestion was created last."""
    def last_created(experience: Experience) -> int:
        stamps = [i.creation_date or i.time or 0 for i in experience.ingestions]
        return max(stamps) if stamps else experience.creation_date

    if not experiences:
        return None
    return max(experiences, key=last_created)


def plan_quick_add(
    experiences: List[Experience],
    entry: QuickAdd,
    now: int,
    window_hours: float = DEFAULT_WINDOW_HOURS,
) -> QuickAddPlan:
    """
    Append to the most recent experience when its last ingestion was created
    within `window_hours`, otherwise create a new experience. Returns a new
    experience list; the input is not modified.
    """
    ingestion = Ingestion.create(
        substance_name=entry.substance,
        dose=entry.mass,
        units=entry.units,
        administration_route=entry.administration_route,
        now=now,
    )

    recent = most_recent_experience(experiences)
    cutoff = now - int(window_hours * 60 * 60 * 1000)
    if recent is not None and recent.ingestions and not entry.forces_new_experience:
        last = recent.ingestions[-1]
        if (last.creation_date or 0) >= cutoff:
            logger.info(f"Quick add: appending {entry.substance} to experience {recent.id}")
            return QuickAddPlan(
                experiences=append_ingestion(experiences, recent.id, ingestion),
                experience_id=recent.id,
                created=False,
                message=f"Added a {entry.substance} ingestion to {recent.title}",
                ingestion=ingestion,
            )

    title = entry.title or f"Quick Add: {entry.substance}"
    experience = Experience.create(title=title, ingestion=ingestion, now=now)
    logger.info(f"Quick add: created experience {experience.id} for {entry.substance}")
    return QuickAddPlan(
        experiences=[*experiences, experience],
        experience_id=experience.id,
        created=True,
        message=f"Created a new {entry.substance} experience called {title}",
        ingestion=ingestion,
    )
