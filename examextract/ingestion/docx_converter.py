"""Word document (.docx) to HTML conversion and chunking."""

import asyncio
import base64
import io
import logging
from typing import List

import mammoth

from examextract.ingestion.document_loader import DocumentProcessingError

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHUNK_CHARS = 30000
PARAGRAPH_CLOSE_TAG = "</p>"


def chunk_html_content(html: str, max_chunk_size: int = DEFAULT_MAX_CHUNK_CHARS) -> List[str]:
    """
    Split HTML into chunks at paragraph boundaries.

    Consecutive paragraphs are packed into a chunk until the next one would
    push it past ``max_chunk_size`` characters. A single paragraph longer
    than the budget becomes its own chunk rather than being cut. Joining the
    returned chunks gives back ``html`` unchanged.

    Args:
        html: HTML produced by the converter.
        max_chunk_size: Character budget per chunk.

    Returns:
        List of HTML chunks in document order.
    """
    if len(html) <= max_chunk_size:
        return [html]

    chunks: List[str] = []
    parts = html.split(PARAGRAPH_CLOSE_TAG)
    current_chunk = ""

    for index, part in enumerate(parts):
        # Every split point consumed one closing tag
        if index < len(parts) - 1:
            part += PARAGRAPH_CLOSE_TAG

        if len(current_chunk) + len(part) > max_chunk_size:
            if current_chunk:
                chunks.append(current_chunk)
                current_chunk = part
            else:
                chunks.append(part)
                current_chunk = ""
        else:
            current_chunk += part

    if current_chunk:
        chunks.append(current_chunk)

    return chunks


def encode_chunk(chunk: str) -> str:
    """Base64-encode an HTML chunk's UTF-8 bytes for transport."""
    return base64.b64encode(chunk.encode("utf-8")).decode("ascii")


def decode_chunk(encoded_chunk: str) -> str:
    """Reverse ``encode_chunk``."""
    return base64.b64decode(encoded_chunk).decode("utf-8")


def convert_docx_to_html(docx_bytes: bytes) -> str:
    """
    Convert a .docx file to a single HTML string.

    Bold and italic survive the conversion; colours do not.

    Raises:
        DocumentProcessingError: If the document cannot be read.
    """
    try:
        result = mammoth.convert_to_html(io.BytesIO(docx_bytes))
    except Exception as e:
        raise DocumentProcessingError(f"Failed to convert Word document: {e}") from e

    for message in result.messages:
        logger.debug(f"mammoth {message.type}: {message.message}")

    return result.value


async def convert_docx_to_chunks(
    docx_bytes: bytes,
    *,
    max_chunk_size: int = DEFAULT_MAX_CHUNK_CHARS,
) -> List[str]:
    """
    Convert a .docx file to base64-encoded HTML chunks.

    Args:
        docx_bytes: Raw .docx bytes.
        max_chunk_size: Character budget per chunk.

    Returns:
        Base64-encoded HTML chunks in document order.

    Raises:
        DocumentProcessingError: If conversion fails.
    """
    html = await asyncio.to_thread(convert_docx_to_html, docx_bytes)
    chunks = chunk_html_content(html, max_chunk_size)
    logger.info(f"Converted Word document to {len(html)} chars of HTML in {len(chunks)} chunks")
    return [encode_chunk(chunk) for chunk in chunks]
