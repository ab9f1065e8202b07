from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


INTERACTION_LEVELS = ("dangerous", "unsafe", "caution")


class SourceModel(BaseModel):
    """Reference data is third-party JSON; tolerate unknown keys."""
    model_config = ConfigDict(extra="ignore")


# --- Timing ---

class TimingValue(SourceModel):
    value: Optional[str] = None  # "1-2" or "3"
    unit: Optional[str] = None  # "hours" | "minutes"


class Timing(SourceModel):
    onset: Dict[str, TimingValue] = Field(default_factory=dict)
    duration: Dict[str, TimingValue] = Field(default_factory=dict)
    aftereffects: Dict[str, TimingValue] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.onset or self.duration or self.aftereffects)

    def routes(self) -> List[str]:
        """Declared routes, onset first, in declaration order."""
        seen: List[str] = []
        for phase in (self.onset, self.duration, self.aftereffects):
            for route in phase:
                if route not in seen:
                    seen.append(route)
        return seen


# --- Dosage ---

class DoseBand(SourceModel):
    min: Optional[float] = None
    max: Optional[float] = None


class DosageRoute(SourceModel):
    units: str = "mg"
    threshold: Optional[float] = None
    light: DoseBand = Field(default_factory=DoseBand)
    common: DoseBand = Field(default_factory=DoseBand)
    strong: DoseBand = Field(default_factory=DoseBand)
    heavy: Optional[float] = None


class Dosage(SourceModel):
    routes: Dict[str, DosageRoute] = Field(default_factory=dict)
    bioavailability: Optional[float] = None


# --- Descriptive fields ---

class Properties(SourceModel):
    summary: Optional[str] = None
    avoid: Optional[str] = None
    test_kits: Optional[str] = None
    half_life: Optional[str] = None
    note: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)


class EffectDetail(SourceModel):
    name: str = ""
    url: str = ""
    category: str = ""


class Interactions(SourceModel):
    dangerous: List[str] = Field(default_factory=list)
    unsafe: List[str] = Field(default_factory=list)
    caution: List[str] = Field(default_factory=list)

    def level(self, level: str) -> List[str]:
        return list(getattr(self, level))


class Links(SourceModel):
    experiences: List[str] = Field(default_factory=list)
    research: List[str] = Field(default_factory=list)
    wikipedia: List[str] = Field(default_factory=list)
    general: List[str] = Field(default_factory=list)


class LegalStatus(SourceModel):
    international: str = ""


class Metadata(SourceModel):
    last_updated: str = ""
    source_url: str = ""
    confidence_score: Optional[float] = None


class SubstanceDataContent(SourceModel):
    """One source's (partial) record for a substance. Every field may be absent."""
    name: Optional[str] = None
    pretty_name: Optional[str] = None
    aliases: Optional[List[str]] = None
    categories: Optional[List[str]] = None
    properties: Optional[Properties] = None
    timing: Optional[Timing] = None
    dosage: Optional[Dosage] = None
    effects: Optional[List[str]] = None
    effects_detailed: Optional[List[EffectDetail]] = None
    interactions: Optional[Interactions] = None
    links: Optional[Links] = None
    legal_status: Optional[LegalStatus] = None
    metadata: Optional[Metadata] = None


class SubstanceRecord(BaseModel):
    """
    Canonical record merged from the primary (PsychonautWiki) and secondary
    (TripSit) sources. Every collection is present after merging.
    """
    key: str
    name: str
    pretty_name: str
    aliases: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    effects: List[str] = Field(default_factory=list)
    effects_detailed: List[EffectDetail] = Field(default_factory=list)
    properties: Properties = Field(default_factory=Properties)
    timing: Timing = Field(default_factory=Timing)
    dosage: Dosage = Field(default_factory=Dosage)
    interactions: Interactions = Field(default_factory=Interactions)
    links: Links = Field(default_factory=Links)
    legal_status: LegalStatus = Field(default_factory=LegalStatus)
    metadata: Metadata = Field(default_factory=Metadata)

    # Raw sources kept for traceability
    primary: Optional[SubstanceDataContent] = None
    secondary: Optional[SubstanceDataContent] = None

    @property
    def display_name(self) -> str:
        return self.pretty_name or self.name

    def dosage_for(self, route: Optional[str]) -> Optional[DosageRoute]:
        if not route:
            return None
        return self.dosage.routes.get(route) or self.dosage.routes.get(route.lower())
