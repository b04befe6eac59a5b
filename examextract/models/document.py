"""Uploaded document models."""

from dataclasses import dataclass
from enum import Enum


class DocumentKind(Enum):
    """Document family derived from the declared media type."""

    PDF = "pdf"
    WORD = "docx"
    UNKNOWN = "unknown"


class AppLanguage(Enum):
    """Target language hint passed to the extraction model."""

    AUTO = "auto"
    ENGLISH = "english"
    ARABIC = "arabic"


@dataclass(frozen=True)
class UploadedDocument:
    """Raw bytes of a user-supplied file with its declared media type."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)
