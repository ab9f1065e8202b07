"""
Substance interaction detection.

Interaction lists come from the reference data: each substance declares the
names and categories it is dangerous, unsafe or cautionary to combine with.
Both source databases are consulted for both members of every pair.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Set, Tuple

from dosejournal.models.experience import Experience
from dosejournal.models.substance import INTERACTION_LEVELS, SubstanceRecord

if TYPE_CHECKING:
    from dosejournal.engine.library import SubstanceLibrary

SEVERITY_RANK = {level: rank for rank, level in enumerate(INTERACTION_LEVELS)}


@dataclass
class InteractionFinding:
    """One pairwise interaction at a given severity."""
    level: str  # "dangerous", "unsafe", "caution"
    substance_a: str
    substance_b: str
    note: str = ""

    @property
    def pair_key(self) -> str:
        return f"{self.substance_a}-{self.substance_b}"

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "substance_a": self.substance_a,
            "substance_b": self.substance_b,
            "key": f"{self.pair_key}-{self.level}",
            "note": self.note,
        }


@dataclass
class InteractionReport:
    """
    `checked` is False when fewer than two substances were present, so callers
    can tell "nothing to check" apart from "checked, found none".
    """
    checked: bool
    findings: List[InteractionFinding] = field(default_factory=list)

    @property
    def summary(self) -> str:
        if self.findings:
            return f"{len(self.findings)} interaction(s) found."
        return "No known interactions found." if self.checked else "No interactions to check."

    def to_dict(self) -> dict:
        return {
            "checked": self.checked,
            "findings": [f.to_dict() for f in self.findings],
            "summary": self.summary,
        }


@dataclass
class _Participant:
    key: str
    name: str
    terms: Set[str]
    record: Optional[SubstanceRecord]

    def entries(self, level: str) -> List[str]:
        """Declared interaction entries for `level` from both sources."""
        if self.record is None:
            return []
        entries: List[str] = []
        for source in (self.record.primary, self.record.secondary):
            if source is not None and source.interactions is not None:
                entries.extend(source.interactions.level(level))
        # Records built without raw sources still carry the merged lists
        if self.record.primary is None and self.record.secondary is None:
            entries.extend(self.record.interactions.level(level))
        return entries


class InteractionDetector:
    """Pairwise dangerous/unsafe/caution detection over a set of substances."""

    def __init__(self, library: "SubstanceLibrary"):
        self.library = library

    def _participant(self, name: str) -> _Participant:
        key = name.lower()
        record = self.library.get(key)
        if record is None:
            return _Participant(key=key, name=key, terms={key}, record=None)
        terms = {key, record.name.lower()}
        terms.update(alias.lower() for alias in record.aliases)
        terms.update(category.lower() for category in record.categories)
        return _Participant(key=key, name=record.name, terms=terms, record=record)

    @staticmethod
    def _distinct(names: List[str]) -> List[str]:
        seen = set()
        distinct = []
        for name in names:
            if not name:
                continue
            key = name.lower()
            if key not in seen:
                seen.add(key)
                distinct.append(name)
        return distinct

    def check(self, substance_names: List[str]) -> InteractionReport:
        """
        Check every unordered pair of distinct substances.

        Args:
            substance_names: names present in an experience (any case, may repeat)

        Returns:
            InteractionReport with findings ordered dangerous, unsafe, caution
        """
        names = self._distinct(substance_names)
        if len(names) < 2:
            return InteractionReport(checked=False)

        participants = [self._participant(name) for name in names]
        found: Dict[Tuple[str, str], InteractionFinding] = {}

        for i, sub_a in enumerate(participants):
            for sub_b in participants[i + 1:]:
                first, second = sorted([sub_a, sub_b], key=lambda p: (p.name, p.key))
                name_a, name_b = first.name, second.name
                pair_key = f"{name_a}-{name_b}"

                for level in INTERACTION_LEVELS:
                    entries = first.entries(level) + second.entries(level)
                    for entry in entries:
                        if not entry:
                            continue
                        needle = entry.lower()
                        if needle in first.terms or needle in second.terms:
                            found.setdefault(
                                (pair_key, level),
                                InteractionFinding(
                                    level=level,
                                    substance_a=name_a,
                                    substance_b=name_b,
                                    note=f"Listed as {level}: {entry}",
                                ),
                            )

        findings = sorted(found.values(), key=lambda f: SEVERITY_RANK[f.level])
        return InteractionReport(checked=True, findings=findings)

    def check_experience(self, experience: Experience) -> InteractionReport:
        return self.check([i.substance_name for i in experience.ingestions])


def detect_interactions(
    substance_names: List[str],
    library: "SubstanceLibrary",
) -> InteractionReport:
    return InteractionDetector(library).check(substance_names)


def detect_experience_interactions(
    experience: Experience,
    library: "SubstanceLibrary",
) -> InteractionReport:
    return InteractionDetector(library).check_experience(experience)
