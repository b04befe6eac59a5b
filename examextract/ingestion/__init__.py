"""Document ingestion: type detection, PDF rendering, Word conversion."""

from examextract.ingestion.document_loader import (
    DOCX_MEDIA_TYPE,
    PDF_MEDIA_TYPE,
    DocumentProcessingError,
    UnsupportedDocumentError,
    detect_document_kind,
    require_supported_kind,
)
from examextract.ingestion.docx_converter import (
    chunk_html_content,
    convert_docx_to_chunks,
    convert_docx_to_html,
    decode_chunk,
    encode_chunk,
)
from examextract.ingestion.pdf_rasterizer import (
    count_pdf_pages,
    flatten_to_jpeg,
    rasterize_pdf,
)

__all__ = [
    # Document type detection
    "DOCX_MEDIA_TYPE",
    "PDF_MEDIA_TYPE",
    "DocumentProcessingError",
    "UnsupportedDocumentError",
    "detect_document_kind",
    "require_supported_kind",
    # Word conversion
    "chunk_html_content",
    "convert_docx_to_chunks",
    "convert_docx_to_html",
    "decode_chunk",
    "encode_chunk",
    # PDF rendering
    "count_pdf_pages",
    "flatten_to_jpeg",
    "rasterize_pdf",
]
