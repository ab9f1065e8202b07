import logging
import time
import uuid
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from dosejournal.engine.mass import InvalidMassFormat, Mass

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current time as epoch milliseconds, the unit used throughout the document."""
    return int(time.time() * 1000)


LEGACY_ID_NAMESPACE = uuid.UUID("6f1d2c1e-8a7b-4f3e-9c55-2d4b1a0e7c31")


def new_experience_id() -> str:
    return uuid.uuid4().hex


def legacy_experience_id(creation_date: Any, index: int) -> str:
    """Deterministic id for a stored experience written before ids existed."""
    return uuid.uuid5(LEGACY_ID_NAMESPACE, f"{creation_date}:{index}").hex


class DocumentModel(BaseModel):
    """camelCase on disk, snake_case in Python."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Location(DocumentModel):
    name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class DoseRecord(DocumentModel):
    """Stored shape of a Mass. Kept loose so one bad record doesn't poison a load."""
    base: Optional[Any] = None
    multiplier: Optional[Any] = None
    adjusted: Optional[Any] = None
    unit: Optional[Any] = None

    @classmethod
    def from_mass(cls, mass: Mass) -> "DoseRecord":
        return cls(**mass.to_dict())

    def to_mass(self) -> Mass:
        """Raises InvalidMassFormat when the stored quantity is malformed."""
        return Mass.from_record({"adjusted": self.adjusted, "unit": self.unit})


class Ingestion(DocumentModel):
    substance_name: str
    dose: Optional[DoseRecord] = None
    units: str = ""
    administration_route: str = ""
    time: Optional[int] = None
    creation_date: Optional[int] = None
    notes: str = ""
    consumer_name: Optional[str] = None
    end_time: Optional[int] = None
    # Carried metadata, not computed over
    is_dose_an_estimate: bool = False
    estimated_dose_standard_deviation: Optional[float] = None
    custom_unit_id: Optional[int] = None
    stomach_fullness: Optional[str] = None

    @field_validator("dose", mode="before")
    @classmethod
    def _loose_dose(cls, value: Any) -> Any:
        """A dose that isn't a record becomes an empty one so the ingestion still loads."""
        if value is None or isinstance(value, (dict, DoseRecord)):
            return value
        if isinstance(value, str):
            try:
                return DoseRecord.from_mass(Mass(value))
            except InvalidMassFormat:
                pass
        logger.warning(f"Unreadable dose {value!r}, keeping the ingestion without a quantity")
        return DoseRecord()

    @classmethod
    def create(
        cls,
        substance_name: str,
        dose: Mass,
        units: str,
        administration_route: str,
        time: Optional[int] = None,
        notes: str = "",
        consumer_name: Optional[str] = None,
        now: Optional[int] = None,
    ) -> "Ingestion":
        created = now if now is not None else now_ms()
        return cls(
            substance_name=substance_name,
            dose=DoseRecord.from_mass(dose),
            units=units,
            administration_route=administration_route,
            time=time if time is not None else created,
            creation_date=created,
            notes=notes,
            consumer_name=consumer_name,
        )

    @property
    def mass(self) -> Mass:
        """The dose as a Mass. Raises InvalidMassFormat for malformed or missing doses."""
        if self.dose is None:
            return Mass.from_record(None)
        return self.dose.to_mass()

    def started_at(self, fallback: Optional[int] = None) -> Optional[int]:
        return self.time or self.creation_date or fallback


class Experience(DocumentModel):
    id: str = Field(default_factory=new_experience_id)
    title: str = ""
    creation_date: int
    sort_date: Optional[int] = None
    ingestions: List[Ingestion] = Field(default_factory=list)
    location: Optional[Location] = None
    is_favorite: bool = False
    text: str = ""
    ratings: List[Any] = Field(default_factory=list)
    timed_notes: List[Any] = Field(default_factory=list)

    @classmethod
    def create(
        cls,
        title: str,
        ingestion: Ingestion,
        text: str = "",
        now: Optional[int] = None,
    ) -> "Experience":
        created = now if now is not None else now_ms()
        return cls(
            title=title,
            creation_date=created,
            sort_date=ingestion.time or created,
            ingestions=[ingestion],
            text=text,
        )

    @property
    def timestamp(self) -> int:
        return self.sort_date or self.creation_date

    def substance_names(self) -> List[str]:
        """Distinct substance names, case-insensitive, in ingestion order."""
        seen = set()
        names = []
        for ingestion in self.ingestions:
            key = ingestion.substance_name.lower()
            if key not in seen:
                seen.add(key)
                names.append(ingestion.substance_name)
        return names


class ExperienceNotFound(KeyError):
    """No experience with the given id."""


def find_experience(experiences: List[Experience], experience_id: str) -> Experience:
    for experience in experiences:
        if experience.id == experience_id:
            return experience
    raise ExperienceNotFound(experience_id)


def append_ingestion(
    experiences: List[Experience],
    experience_id: str,
    ingestion: Ingestion,
) -> List[Experience]:
    """
    Return a new experience list with `ingestion` appended to the experience
    identified by `experience_id`. Lookup is by id only, never by title.
    """
    target = find_experience(experiences, experience_id)
    updated = target.model_copy(
        update={
            "ingestions": [*target.ingestions, ingestion],
            "sort_date": max(target.sort_date or 0, ingestion.time or 0) or target.creation_date,
        }
    )
    return [updated if e.id == experience_id else e for e in experiences]
