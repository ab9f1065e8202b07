from dosejournal.engine.merger import merge_dataset_entry, merge_lists, merge_substance
from dosejournal.models.substance import SubstanceDataContent


def test_merge_lists_keeps_order_and_drops_exact_duplicates():
    assert merge_lists(["a", "b"], ["b", "c", "B"], None) == ["a", "b", "c", "B"]


def test_both_sources_absent_gives_complete_empty_record():
    record = merge_substance("Mystery")
    assert record.key == "mystery"
    assert record.name == "Mystery"
    assert record.pretty_name == "Mystery"
    assert record.aliases == []
    assert record.categories == []
    assert record.effects_detailed == []
    assert record.properties.warnings == []
    assert record.properties.summary == ""
    assert record.timing.is_empty()
    assert record.dosage.routes == {}
    assert record.interactions.dangerous == []
    assert record.links.wikipedia == []
    assert record.legal_status.international == ""
    assert record.metadata.source_url == ""


def test_primary_scalars_win_and_secondary_fills_gaps():
    primary = {"name": "MDMA", "properties": {"summary": "from primary"}}
    secondary = {
        "name": "mdma",
        "pretty_name": "MDMA (tripsit)",
        "properties": {"summary": "from secondary", "test_kits": "Marquis"},
    }
    record = merge_substance("mdma", primary, secondary)
    assert record.name == "MDMA"
    assert record.pretty_name == "MDMA (tripsit)"
    assert record.properties.summary == "from primary"
    assert record.properties.test_kits == "Marquis"


def test_empty_string_falls_through_to_secondary():
    record = merge_substance("x", {"pretty_name": ""}, {"pretty_name": "X"})
    assert record.pretty_name == "X"


def test_lists_are_unioned():
    record = merge_substance(
        "mdma",
        {"aliases": ["Molly", "XTC"], "interactions": {"dangerous": ["MAOIs"]}},
        {"aliases": ["XTC", "Mandy"], "interactions": {"dangerous": ["MAOIs", "Tramadol"]}},
    )
    assert record.aliases == ["Molly", "XTC", "Mandy"]
    assert record.interactions.dangerous == ["MAOIs", "Tramadol"]


def test_timing_and_dosage_taken_wholesale_from_one_source():
    primary = {"timing": {"onset": {"oral": {"value": "30-45", "unit": "minutes"}}}}
    secondary = {
        "timing": {"duration": {"oral": {"value": "3-5", "unit": "hours"}}},
        "dosage": {"routes": {"oral": {"threshold": 30}}},
    }
    record = merge_substance("mdma", primary, secondary)
    assert "oral" in record.timing.onset
    assert record.timing.duration == {}
    assert record.dosage.routes["oral"].threshold == 30


def test_sources_are_kept_for_traceability():
    record = merge_dataset_entry("caffeine", {"tripsit": {"name": "caffeine"}})
    assert record.primary is None
    assert isinstance(record.secondary, SubstanceDataContent)
    assert record.name == "caffeine"


def test_unknown_source_keys_are_ignored():
    record = merge_substance("x", {"name": "X", "formatted_dose": {"oral": "10mg"}})
    assert record.name == "X"


def test_merging_a_source_with_itself_changes_no_list():
    source = {
        "name": "MDMA",
        "aliases": ["Molly", "XTC"],
        "categories": ["stimulant", "entactogen"],
        "effects": ["Stimulation"],
        "properties": {"warnings": ["Stay hydrated."]},
        "interactions": {"dangerous": ["MAOIs"], "unsafe": ["Tramadol"], "caution": ["Cannabis"]},
    }
    alone = merge_substance("mdma", source, None)
    doubled = merge_substance("mdma", source, source)
    assert alone.aliases == doubled.aliases
    assert alone.categories == doubled.categories
    assert alone.effects == doubled.effects
    assert alone.properties.warnings == doubled.properties.warnings
    assert alone.interactions == doubled.interactions
