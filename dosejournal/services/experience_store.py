"""
Experience Store - the journal as one JSON document on disk.

The only supported mutation is read-modify-write of the whole document.
`update()` serialises those so at most one write is in flight.
"""
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union
import json
import logging
import os
import tempfile
import threading

from pydantic import ValidationError

from dosejournal.models.experience import Experience, legacy_experience_id

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("creationDate", "ingestions")


class CorruptStoreError(Exception):
    """The experience document exists but cannot be parsed."""


class InvalidImportError(ValueError):
    """Imported text is not a valid experience document."""


def _parse_document(raw: object) -> List[Experience]:
    experiences = []
    for index, entry in enumerate(raw):
        if isinstance(entry, dict) and not entry.get("id"):
            entry = {**entry, "id": legacy_experience_id(entry.get("creationDate"), index)}
        experiences.append(Experience.model_validate(entry))
    return experiences


def validate_import(text: str) -> List[Experience]:
    """
    Validate an imported document before it replaces the journal.

    Requires a JSON array whose entries all carry `creationDate` and
    `ingestions`.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        raise InvalidImportError("The file is not valid JSON.")

    if not isinstance(data, list):
        raise InvalidImportError("The file does not contain a list of experiences.")

    for index, entry in enumerate(data):
        if not isinstance(entry, dict) or any(f not in entry for f in REQUIRED_FIELDS):
            raise InvalidImportError(
                f"Entry {index} is missing required fields: {', '.join(REQUIRED_FIELDS)}"
            )

    try:
        return _parse_document(data)
    except ValidationError as e:
        raise InvalidImportError(f"The file contains invalid experiences: {e.error_count()} error(s)")


class ExperienceStore:
    """Reads and writes the whole experience document."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> List[Experience]:
        """
        Load every experience. A missing file is an empty journal; an
        unparsable one raises CorruptStoreError.
        """
        if not self.path.exists():
            logger.info(f"No experiences file at {self.path}, starting empty")
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Could not parse experiences file {self.path}: {e}")
            raise CorruptStoreError(f"Could not load experiences: {e}") from e

        if not isinstance(data, list):
            logger.error(f"Experiences file {self.path} is not a JSON array")
            raise CorruptStoreError("Could not load experiences: document is not a list")

        try:
            return _parse_document(data)
        except ValidationError as e:
            logger.error(f"Experiences file {self.path} has invalid entries: {e}")
            raise CorruptStoreError(f"Could not load experiences: {e.error_count()} invalid field(s)") from e

    def load_or_empty(self) -> Tuple[List[Experience], Optional[str]]:
        """Load, falling back to an empty journal plus a message to show the user."""
        try:
            return self.load(), None
        except CorruptStoreError as e:
            return [], str(e)

    def save(self, experiences: List[Experience]) -> None:
        """Write the whole document (pretty-printed UTF-8), replacing the old one atomically."""
        payload = json.dumps(
            [e.to_document() for e in experiences],
            indent=2,
            ensure_ascii=False,
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".experiences-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.info(f"Saved {len(experiences)} experiences to {self.path}")

    def update(
        self,
        mutator: Callable[[List[Experience]], List[Experience]],
    ) -> List[Experience]:
        """Read-modify-write under the store lock. Returns the saved list."""
        with self._lock:
            experiences = self.load()
            updated = mutator(experiences)
            self.save(updated)
            return updated

    def import_text(self, text: str) -> List[Experience]:
        """Replace the journal with a validated imported document."""
        experiences = validate_import(text)
        with self._lock:
            self.save(experiences)
        return experiences

    def export_text(self) -> Optional[str]:
        """The stored document as text, or None when there is nothing to export."""
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def clear(self) -> None:
        with self._lock:
            if self.path.exists():
                self.path.unlink()
                logger.info(f"Deleted experiences file {self.path}")
