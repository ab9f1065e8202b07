"""
Journal Service - orchestrates the reference library, the experience store and
the computation engine for the presentation layer.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging

from dosejournal.config import Settings, get_settings
from dosejournal.engine.curves import SubstanceCurve, experience_curves
from dosejournal.engine.interactions import InteractionDetector, InteractionReport
from dosejournal.engine.library import SubstanceLibrary
from dosejournal.engine.mass import Mass, entered_unit
from dosejournal.engine.quick_add import (
    QuickAddParse,
    QuickAddPlan,
    load_token_list,
    parse_quick_add,
    plan_quick_add,
)
from dosejournal.engine.statistics import CumulativeDose, UsageStatistics, compute_statistics, cumulative_doses
from dosejournal.engine.timing import ExperienceTimeline, experience_timeline, is_active
from dosejournal.models.experience import (
    Experience,
    Ingestion,
    append_ingestion,
    find_experience,
    now_ms,
)
from dosejournal.services.experience_store import ExperienceStore

logger = logging.getLogger(__name__)


@dataclass
class ExperienceOverview:
    """Everything the experience detail view needs."""
    experience: Experience
    curves: List[SubstanceCurve]
    interactions: InteractionReport
    timeline: Optional[ExperienceTimeline]
    cumulative_doses: Dict[str, CumulativeDose]
    active_ingestions: List[Ingestion] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "experience_id": self.experience.id,
            "title": self.experience.title,
            "curves": [c.to_dict() for c in self.curves],
            "interactions": self.interactions.to_dict(),
            "timeline": self.timeline.to_dict() if self.timeline else None,
            "cumulative_doses": {k: v.to_dict() for k, v in self.cumulative_doses.items()},
            "active_ingestions": [i.to_document() for i in self.active_ingestions],
        }


class JournalService:
    """Entry point for journaling operations."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        library: Optional[SubstanceLibrary] = None,
        store: Optional[ExperienceStore] = None,
    ):
        self.settings = settings or get_settings()
        self.library = library or SubstanceLibrary.from_file(self.settings.reference_data_path)
        self.store = store or ExperienceStore(self.settings.experiences_path)
        self.interactions = InteractionDetector(self.library)
        self._known_substances: Optional[List[str]] = None
        self._known_routes: Optional[List[str]] = None

    # --- Quick-add token lists ---

    @property
    def known_substances(self) -> List[str]:
        if self._known_substances is None:
            self._known_substances = load_token_list(self.settings.substances_list_path, "substances")
        return self._known_substances

    @property
    def known_routes(self) -> List[str]:
        if self._known_routes is None:
            self._known_routes = load_token_list(self.settings.routes_list_path, "routes")
        return self._known_routes

    # --- Logging ingestions ---

    def add_ingestion(
        self,
        substance_name: str,
        dose: str,
        administration_route: str,
        time: Optional[int] = None,
        experience_id: Optional[str] = None,
        title: str = "",
        notes: str = "",
        consumer_name: Optional[str] = None,
        now: Optional[int] = None,
    ) -> Experience:
        """
        Log one ingestion, either into an existing experience (by id) or a new one.

        Raises:
            InvalidMassFormat: the dose string is malformed
            ExperienceNotFound: experience_id does not exist
        """
        now = now if now is not None else now_ms()
        mass = Mass(dose)
        bands = self.library.dosage_for(substance_name, administration_route)
        ingestion = Ingestion.create(
            substance_name=substance_name,
            dose=mass,
            units=bands.units if bands else entered_unit(dose),
            administration_route=administration_route,
            time=time,
            notes=notes,
            consumer_name=consumer_name,
            now=now,
        )
        result: Dict[str, str] = {}

        def mutate(experiences: List[Experience]) -> List[Experience]:
            if experience_id:
                result["id"] = experience_id
                return append_ingestion(experiences, experience_id, ingestion)
            experience = Experience.create(
                title=title or substance_name,
                ingestion=ingestion,
                text=notes,
                now=now,
            )
            result["id"] = experience.id
            return [*experiences, experience]

        updated = self.store.update(mutate)
        return find_experience(updated, result["id"])

    def parse_quick_add(self, query: str) -> QuickAddParse:
        return parse_quick_add(query, self.known_substances, self.known_routes)

    def quick_add(self, query: str, now: Optional[int] = None) -> Optional[QuickAddPlan]:
        """Parse a quick-add query and persist it. Returns None when the query is incomplete."""
        parsed = self.parse_quick_add(query)
        if not parsed.complete:
            return None
        now = now if now is not None else now_ms()
        plan: Dict[str, QuickAddPlan] = {}

        def mutate(experiences: List[Experience]) -> List[Experience]:
            plan["result"] = plan_quick_add(
                experiences,
                parsed.entry,
                now,
                window_hours=self.settings.quick_add_window_hours,
            )
            return plan["result"].experiences

        self.store.update(mutate)
        return plan["result"]

    # --- Views ---

    def experience_overview(self, experience_id: str, now: Optional[int] = None) -> ExperienceOverview:
        now = now if now is not None else now_ms()
        experience = find_experience(self.store.load(), experience_id)
        default_minutes = self.settings.default_active_minutes
        return ExperienceOverview(
            experience=experience,
            curves=experience_curves(experience, self.library),
            interactions=self.interactions.check_experience(experience),
            timeline=experience_timeline(experience, self.library, now, default_minutes),
            cumulative_doses=cumulative_doses(experience),
            active_ingestions=[
                i for i in experience.ingestions
                if is_active(i, self.library, now, default_minutes)
            ],
        )

    def statistics(self, now: Optional[int] = None) -> UsageStatistics:
        experiences, error = self.store.load_or_empty()
        if error:
            logger.error(f"Statistics computed over an empty journal: {error}")
        return compute_statistics(
            experiences,
            now if now is not None else now_ms(),
            year_days=self.settings.stats_year_days,
            month_days=self.settings.stats_month_days,
        )

    def search_experiences(self, query: str = "") -> List[Experience]:
        """Newest first; matches title, location name, substance or consumer."""
        experiences, _ = self.store.load_or_empty()
        ordered = sorted(experiences, key=lambda e: e.timestamp, reverse=True)
        needle = (query or "").strip().lower()
        if not needle:
            return ordered

        def matches(experience: Experience) -> bool:
            if needle in experience.title.lower():
                return True
            if experience.location and experience.location.name and needle in experience.location.name.lower():
                return True
            for ingestion in experience.ingestions:
                if needle in ingestion.substance_name.lower():
                    return True
                if ingestion.consumer_name and needle in ingestion.consumer_name.lower():
                    return True
            return False

        return [e for e in ordered if matches(e)]
