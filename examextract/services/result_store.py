"""In-memory store for extracted MCQ records."""

import logging
from typing import Dict, Iterable, Iterator, List, Optional

from examextract.clients.extraction_client import normalize_correct_answer
from examextract.models import FIELD_ALIASES, MCQRecord

logger = logging.getLogger(__name__)

OPTIONAL_TEXT_FIELDS = ("choice_e", "passage")

# Accept both attribute names and wire names for edits
_EDITABLE_FIELDS: Dict[str, str] = {
    **{attr: attr for attr in FIELD_ALIASES},
    **{alias: attr for attr, alias in FIELD_ALIASES.items()},
}


class RecordNotFoundError(Exception):
    """Raised when no record has the requested id."""

    pass


class InvalidEditError(Exception):
    """Raised when an edit names an unknown field or an invalid value."""

    pass


class ResultStore:
    """Ordered collection of MCQRecords for one extraction run.

    Inserts are append-only and keep arrival order. Records are only changed
    through ``update`` and removed through ``delete``. All access happens on
    the event loop thread, so no locking is done.
    """

    def __init__(self, records: Optional[Iterable[MCQRecord]] = None):
        self._records: List[MCQRecord] = list(records or [])

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[MCQRecord]:
        return iter(list(self._records))

    @property
    def records(self) -> List[MCQRecord]:
        """Copy of the stored records in insertion order."""
        return list(self._records)

    def extend(self, records: Iterable[MCQRecord]) -> int:
        """Append records; returns how many were added."""
        new_records = list(records)
        self._records.extend(new_records)
        return len(new_records)

    def clear(self) -> None:
        self._records.clear()

    def get(self, record_id: str) -> MCQRecord:
        for record in self._records:
            if record.id == record_id:
                return record
        raise RecordNotFoundError(f"No question with id '{record_id}'")

    def update(self, record_id: str, field: str, value: Optional[str]) -> MCQRecord:
        """
        Change one field of a record.

        Args:
            record_id: Record identifier.
            field: Attribute name (``choice_a``) or wire name (``choiceA``).
            value: New text. For ``correct_answer`` a letter A-E or empty.

        Returns:
            The updated record.

        Raises:
            RecordNotFoundError: If no record has ``record_id``.
            InvalidEditError: If the field is not editable or the answer
                letter is invalid.
        """
        attr = _EDITABLE_FIELDS.get(field)
        if attr is None:
            raise InvalidEditError(f"Field '{field}' cannot be edited")

        record = self.get(record_id)
        value = value or ""

        if attr == "correct_answer":
            normalized = normalize_correct_answer(value)
            if value.strip() and not normalized:
                raise InvalidEditError(f"Correct answer must be one of A-E, got '{value}'")
            value = normalized
        elif attr in OPTIONAL_TEXT_FIELDS and not value.strip():
            value = None

        setattr(record, attr, value)
        logger.debug(f"Updated {attr} of question {record_id}")
        return record

    def delete(self, record_id: str) -> None:
        record = self.get(record_id)
        self._records.remove(record)
        logger.debug(f"Deleted question {record_id}")
