import pytest

from dosejournal.engine.library import SubstanceLibrary
from dosejournal.engine.mass import Mass
from dosejournal.models.experience import Experience, Ingestion

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS
NOW = 1_700_000_000_000


@pytest.fixture(scope="session")
def library():
    return SubstanceLibrary.from_file()


@pytest.fixture
def now():
    return NOW


def make_ingestion(substance, dose="100mg", route="oral", time=NOW, creation_date=None):
    mass = Mass(dose)
    ingestion = Ingestion.create(
        substance_name=substance,
        dose=mass,
        units=mass.unit,
        administration_route=route,
        time=time,
        now=creation_date if creation_date is not None else time,
    )
    return ingestion


def make_experience(title, *ingestions, created=NOW):
    experience = Experience.create(title=title, ingestion=ingestions[0], now=created)
    return experience.model_copy(update={"ingestions": list(ingestions)})
