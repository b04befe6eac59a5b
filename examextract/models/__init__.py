"""Data models module."""

from examextract.models.document import AppLanguage, DocumentKind, UploadedDocument
from examextract.models.mcq_record import ANSWER_LETTERS, FIELD_ALIASES, MCQRecord
from examextract.models.processing_status import ProcessingState, ProcessingStatus

__all__ = [
    "ANSWER_LETTERS",
    "AppLanguage",
    "DocumentKind",
    "FIELD_ALIASES",
    "MCQRecord",
    "ProcessingState",
    "ProcessingStatus",
    "UploadedDocument",
]
