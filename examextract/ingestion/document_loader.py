"""Document type detection from declared media types."""

from typing import Optional

from examextract.models import DocumentKind, UploadedDocument

PDF_MEDIA_TYPE = "application/pdf"
DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_KIND_BY_MEDIA_TYPE = {
    PDF_MEDIA_TYPE: DocumentKind.PDF,
    DOCX_MEDIA_TYPE: DocumentKind.WORD,
}


class UnsupportedDocumentError(Exception):
    """Raised when a file's media type is neither PDF nor DOCX."""

    pass


class DocumentProcessingError(Exception):
    """Raised when a whole document cannot be rendered or converted."""

    pass


def detect_document_kind(content_type: Optional[str]) -> DocumentKind:
    """
    Map a declared media type to a DocumentKind.

    Only the media type string is inspected; file contents are never sniffed.
    Parameters such as ``; charset=binary`` and letter case are ignored.
    """
    if not content_type:
        return DocumentKind.UNKNOWN
    media_type = content_type.split(";", 1)[0].strip().lower()
    return _KIND_BY_MEDIA_TYPE.get(media_type, DocumentKind.UNKNOWN)


def require_supported_kind(document: UploadedDocument) -> DocumentKind:
    """
    Detect the document kind, rejecting anything that is not PDF or DOCX.

    Raises:
        UnsupportedDocumentError: If the declared media type is unsupported.
    """
    kind = detect_document_kind(document.content_type)
    if kind is DocumentKind.UNKNOWN:
        raise UnsupportedDocumentError(
            f"Unsupported file type '{document.content_type}' for {document.filename}. "
            f"Please upload a PDF or Word (.docx) document."
        )
    return kind
