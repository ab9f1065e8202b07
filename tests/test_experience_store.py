import json

import pytest

from dosejournal.engine.mass import InvalidMassFormat, Mass
from dosejournal.services.experience_store import (
    CorruptStoreError,
    ExperienceStore,
    InvalidImportError,
    validate_import,
)

from conftest import make_experience, make_ingestion

LEGACY_DOCUMENT = [
    {
        "title": "Old night",
        "creationDate": 1600000000000,
        "sortDate": 1600000000000,
        "ingestions": [
            {
                "substanceName": "MDMA",
                "dose": {"base": 100, "multiplier": 1, "adjusted": 100, "unit": "mg"},
                "units": "mg",
                "administrationRoute": "oral",
                "time": 1600000000000,
                "customUnitId": None,
            }
        ],
        "isFavorite": True,
        "moodBefore": "calm",
    }
]


@pytest.fixture
def store(tmp_path):
    return ExperienceStore(tmp_path / "experiences.json")


def test_missing_file_is_empty_journal(store):
    assert not store.exists()
    assert store.load() == []
    assert store.export_text() is None


def test_saved_document_is_camel_case_and_pretty(store):
    store.save([make_experience("Tonight", make_ingestion("MDMA"))])
    text = store.path.read_text(encoding="utf-8")
    assert text.startswith("[\n  {")
    document = json.loads(text)
    assert document[0]["title"] == "Tonight"
    assert "creationDate" in document[0]
    assert document[0]["ingestions"][0]["substanceName"] == "MDMA"
    assert document[0]["ingestions"][0]["dose"]["unit"] == "mg"


def test_legacy_document_gets_ids_and_keeps_unknown_fields(store):
    store.path.write_text(json.dumps(LEGACY_DOCUMENT), encoding="utf-8")
    experiences = store.load()
    assert len(experiences) == 1
    assert experiences[0].id
    assert experiences[0].is_favorite is True
    assert experiences[0].ingestions[0].mass.base == 100

    store.save(experiences)
    saved = json.loads(store.export_text())
    assert saved[0]["moodBefore"] == "calm"
    assert saved[0]["id"] == experiences[0].id
    assert store.load()[0].id == experiences[0].id


@pytest.mark.parametrize("content", ["{not json", json.dumps({"experiences": []}), json.dumps([{"title": 3}])])
def test_corrupt_store(store, content):
    store.path.write_text(content, encoding="utf-8")
    with pytest.raises(CorruptStoreError):
        store.load()
    experiences, message = store.load_or_empty()
    assert experiences == []
    assert message.startswith("Could not load experiences")


def test_update_persists_mutation(store):
    first = make_experience("One", make_ingestion("MDMA"))
    store.update(lambda experiences: [*experiences, first])
    saved = store.update(lambda experiences: [*experiences, make_experience("Two", make_ingestion("Caffeine"))])
    assert [e.title for e in saved] == ["One", "Two"]
    assert [e.title for e in store.load()] == ["One", "Two"]


def test_validate_import():
    assert len(validate_import(json.dumps(LEGACY_DOCUMENT))) == 1
    with pytest.raises(InvalidImportError):
        validate_import("nope")
    with pytest.raises(InvalidImportError):
        validate_import(json.dumps({"title": "x"}))
    with pytest.raises(InvalidImportError):
        validate_import(json.dumps([{"title": "no dates", "ingestions": []}]))


def test_import_replaces_and_clear_deletes(store):
    store.save([make_experience("Current", make_ingestion("MDMA"))])
    imported = store.import_text(json.dumps(LEGACY_DOCUMENT))
    assert [e.title for e in imported] == ["Old night"]
    assert [e.title for e in store.load()] == ["Old night"]

    store.clear()
    assert not store.exists()
    assert store.load() == []


def test_failed_import_keeps_existing_document(store):
    store.save([make_experience("Current", make_ingestion("MDMA"))])
    with pytest.raises(InvalidImportError):
        store.import_text("[1, 2]")
    assert [e.title for e in store.load()] == ["Current"]


def test_legacy_ids_are_stable_across_loads(store):
    store.path.write_text(json.dumps(LEGACY_DOCUMENT * 2), encoding="utf-8")
    first = [e.id for e in store.load()]
    second = [e.id for e in store.load()]
    assert first == second
    assert len(set(first)) == 2


def test_ingestion_with_unreadable_dose_still_loads(store):
    document = json.loads(json.dumps(LEGACY_DOCUMENT))
    document[0]["ingestions"].append({
        "substanceName": "MDMA",
        "dose": 100,
        "units": "mg",
        "administrationRoute": "oral",
        "time": 1600000000000,
    })
    document[0]["ingestions"].append({
        "substanceName": "MDMA",
        "dose": "50mg",
        "administrationRoute": "oral",
        "time": 1600000000000,
    })
    store.path.write_text(json.dumps(document), encoding="utf-8")

    experiences = store.load()
    ingestions = experiences[0].ingestions
    assert len(ingestions) == 3
    assert ingestions[1].dose is not None
    with pytest.raises(InvalidMassFormat):
        ingestions[1].mass
    assert ingestions[2].mass == Mass("50mg")
