"""
Reference data merger.

Combines the two partial source records for a substance (PsychonautWiki as
primary, TripSit as secondary) into one canonical SubstanceRecord. Absent data
on both sides always resolves to an empty value, never an exception.
"""

from typing import Any, Dict, Iterable, List, Optional, Union

from dosejournal.models.substance import (
    INTERACTION_LEVELS,
    Dosage,
    Interactions,
    LegalStatus,
    Links,
    Metadata,
    Properties,
    SubstanceDataContent,
    SubstanceRecord,
    Timing,
)

SourceInput = Union[SubstanceDataContent, Dict[str, Any], None]

PROPERTY_STRINGS = ("summary", "avoid", "test_kits", "half_life", "note")


def _coerce(source: SourceInput) -> Optional[SubstanceDataContent]:
    if source is None:
        return None
    if isinstance(source, SubstanceDataContent):
        return source
    return SubstanceDataContent.model_validate(source)


def merge_lists(*sources: Optional[Iterable[str]]) -> List[str]:
    """Ordered union, exact-string de-duplication."""
    merged: List[str] = []
    seen = set()
    for items in sources:
        for item in items or []:
            if item not in seen:
                seen.add(item)
                merged.append(item)
    return merged


def first_present(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value:
            return value
    return None


def _wholesale(primary, secondary, attr: str):
    """Primary's value for `attr` if present, else secondary's, else None."""
    for source in (primary, secondary):
        value = getattr(source, attr, None) if source is not None else None
        if value is not None:
            return value
    return None


def _merge_properties(
    primary: Optional[SubstanceDataContent],
    secondary: Optional[SubstanceDataContent],
) -> Properties:
    p = primary.properties if primary and primary.properties else None
    s = secondary.properties if secondary and secondary.properties else None
    fields = {
        name: first_present(getattr(p, name, None), getattr(s, name, None)) or ""
        for name in PROPERTY_STRINGS
    }
    fields["warnings"] = merge_lists(
        p.warnings if p else None,
        s.warnings if s else None,
    )
    return Properties(**fields)


def _merge_interactions(
    primary: Optional[SubstanceDataContent],
    secondary: Optional[SubstanceDataContent],
) -> Interactions:
    p = primary.interactions if primary else None
    s = secondary.interactions if secondary else None
    return Interactions(**{
        level: merge_lists(
            p.level(level) if p else None,
            s.level(level) if s else None,
        )
        for level in INTERACTION_LEVELS
    })


def _merge_metadata(
    primary: Optional[SubstanceDataContent],
    secondary: Optional[SubstanceDataContent],
) -> Metadata:
    base = _wholesale(primary, secondary, "metadata") or Metadata()
    p_url = primary.metadata.source_url if primary and primary.metadata else None
    s_url = secondary.metadata.source_url if secondary and secondary.metadata else None
    return base.model_copy(update={"source_url": first_present(p_url, s_url) or ""})


def merge_substance(
    substance_key: str,
    primary: SourceInput = None,
    secondary: SourceInput = None,
) -> SubstanceRecord:
    """
    Merge two partial source records into a canonical SubstanceRecord.

    Args:
        substance_key: lowercased substance name, fallback identity
        primary: preferred source (PsychonautWiki)
        secondary: fallback source (TripSit)

    Returns:
        SubstanceRecord with every collection present
    """
    primary = _coerce(primary)
    secondary = _coerce(secondary)
    key = substance_key.lower()

    def scalar(attr: str) -> str:
        return first_present(
            getattr(primary, attr, None) if primary else None,
            getattr(secondary, attr, None) if secondary else None,
        ) or substance_key

    def union(attr: str) -> List[str]:
        return merge_lists(
            getattr(primary, attr, None) if primary else None,
            getattr(secondary, attr, None) if secondary else None,
        )

    if primary and primary.effects_detailed:
        effects_detailed = primary.effects_detailed
    elif secondary and secondary.effects_detailed:
        effects_detailed = secondary.effects_detailed
    else:
        effects_detailed = []

    return SubstanceRecord(
        key=key,
        name=scalar("name"),
        pretty_name=scalar("pretty_name"),
        aliases=union("aliases"),
        categories=union("categories"),
        effects=union("effects"),
        effects_detailed=list(effects_detailed),
        properties=_merge_properties(primary, secondary),
        timing=_wholesale(primary, secondary, "timing") or Timing(),
        dosage=_wholesale(primary, secondary, "dosage") or Dosage(),
        interactions=_merge_interactions(primary, secondary),
        links=_wholesale(primary, secondary, "links") or Links(),
        legal_status=_wholesale(primary, secondary, "legal_status") or LegalStatus(),
        metadata=_merge_metadata(primary, secondary),
        primary=primary,
        secondary=secondary,
    )


def merge_dataset_entry(substance_key: str, entry: Optional[Dict[str, Any]]) -> SubstanceRecord:
    """Merge one raw dataset entry of shape `{psychonautwiki?, tripsit?}`."""
    entry = entry or {}
    return merge_substance(
        substance_key,
        primary=entry.get("psychonautwiki"),
        secondary=entry.get("tripsit"),
    )
