"""Multiple-choice question record."""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

ANSWER_LETTERS = ("A", "B", "C", "D", "E")

# Python attribute name -> wire (camelCase) name
FIELD_ALIASES = {
    "question": "question",
    "choice_a": "choiceA",
    "choice_b": "choiceB",
    "choice_c": "choiceC",
    "choice_d": "choiceD",
    "choice_e": "choiceE",
    "correct_answer": "correctAnswer",
    "passage": "passage",
}


def _new_record_id() -> str:
    return uuid.uuid4().hex


@dataclass
class MCQRecord:
    """One extracted question with its choices.

    ``correct_answer`` is either an empty string (unknown) or a single letter
    from ``ANSWER_LETTERS``. ``choice_e`` and ``passage`` are ``None`` when
    the source had no such content.
    """

    question: str
    choice_a: str
    choice_b: str
    choice_c: str
    choice_d: str
    choice_e: Optional[str] = None
    correct_answer: str = ""
    passage: Optional[str] = None
    id: str = field(default_factory=_new_record_id)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the camelCase field names of the model schema."""
        data = {"id": self.id}
        for attr, alias in FIELD_ALIASES.items():
            data[alias] = getattr(self, attr)
        return data
