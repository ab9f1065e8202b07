import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from dosejournal.engine.merger import merge_dataset_entry
from dosejournal.models.substance import DosageRoute, SubstanceRecord

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent.parent / "data"
DEFAULT_REFERENCE_PATH = DATA_DIR / "reference.json"


class SubstanceLibrary:
    """
    Read-only cache of merged substance records built from the bundled
    reference dataset. Safe to share across readers.
    """

    def __init__(self, raw_dataset: Optional[Dict[str, Dict[str, Any]]] = None):
        self._records: Dict[str, SubstanceRecord] = {}
        for key, entry in (raw_dataset or {}).items():
            record = merge_dataset_entry(key, entry)
            self._records[record.key] = record

    @classmethod
    def from_file(cls, path: Union[str, Path, None] = None) -> "SubstanceLibrary":
        """Load the reference dataset (mapping of key -> {tripsit?, psychonautwiki?})."""
        if path is None:
            path = DEFAULT_REFERENCE_PATH
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        library = cls(data)
        logger.info(f"Loaded {len(library)} substances from {path}")
        return library

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None

    def get(self, name: Optional[str]) -> Optional[SubstanceRecord]:
        """Case-insensitive lookup by key. Unknown substances return None."""
        if not name:
            return None
        record = self._records.get(name.lower())
        if record is None:
            logger.debug(f"No reference data for substance '{name}'")
        return record

    def all(self) -> List[SubstanceRecord]:
        """All records sorted by display name."""
        return sorted(self._records.values(), key=lambda r: r.display_name.lower())

    def search(self, query: str) -> List[SubstanceRecord]:
        """Substring match on name, pretty name, and aliases."""
        needle = (query or "").strip().lower()
        if not needle:
            return []
        results = []
        for record in self.all():
            haystack = [record.name, record.pretty_name, *record.aliases]
            if any(needle in value.lower() for value in haystack if value):
                results.append(record)
        return results

    def available_routes(self, name: str) -> List[Dict[str, str]]:
        """Declared dosage routes for a substance, with their units."""
        record = self.get(name)
        if record is None:
            return []
        return [
            {"name": route, "units": bands.units or "mg"}
            for route, bands in record.dosage.routes.items()
        ]

    def dosage_for(self, name: str, route: str) -> Optional[DosageRoute]:
        record = self.get(name)
        if record is None:
            return None
        return record.dosage_for(route)
