"""Render PDF pages to base64 JPEG images for vision extraction."""

import asyncio
import base64
import io
import logging
from typing import List

from pdf2image import convert_from_bytes, pdfinfo_from_bytes
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)
from PIL import Image

from examextract.ingestion.document_loader import DocumentProcessingError

logger = logging.getLogger(__name__)

# PDF user space is 72 points per inch
BASE_DPI = 72
DEFAULT_SCALE = 3.0
DEFAULT_JPEG_QUALITY = 95
DEFAULT_PAGE_BATCH_SIZE = 4

_PDF2IMAGE_ERRORS = (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)


def count_pdf_pages(pdf_bytes: bytes) -> int:
    """
    Return the number of pages in a PDF.

    Raises:
        DocumentProcessingError: If the document cannot be opened.
    """
    try:
        info = pdfinfo_from_bytes(pdf_bytes)
    except _PDF2IMAGE_ERRORS as e:
        raise DocumentProcessingError(f"Failed to open PDF document: {e}") from e
    return int(info.get("Pages", 0))


def flatten_to_jpeg(image: Image.Image, jpeg_quality: int = DEFAULT_JPEG_QUALITY) -> str:
    """
    Draw a page image over a solid white canvas and encode it as base64 JPEG.

    Transparent regions would otherwise turn black in the JPEG.
    """
    canvas = Image.new("RGB", image.size, (255, 255, 255))
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        canvas.paste(rgba, mask=rgba.getchannel("A"))
    else:
        canvas.paste(image.convert("RGB"))

    buffer = io.BytesIO()
    canvas.save(buffer, format="JPEG", quality=jpeg_quality)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def _render_page(pdf_bytes: bytes, page_number: int, dpi: int, jpeg_quality: int) -> str:
    """Render one 1-based page. Returns an empty string if no image was produced."""
    try:
        images = convert_from_bytes(
            pdf_bytes,
            dpi=dpi,
            first_page=page_number,
            last_page=page_number,
        )
    except _PDF2IMAGE_ERRORS as e:
        raise DocumentProcessingError(f"Failed to render page {page_number}: {e}") from e

    if not images:
        logger.warning(f"Page {page_number} produced no image; skipping")
        return ""
    return flatten_to_jpeg(images[0], jpeg_quality)


async def rasterize_pdf(
    pdf_bytes: bytes,
    *,
    scale: float = DEFAULT_SCALE,
    jpeg_quality: int = DEFAULT_JPEG_QUALITY,
    page_batch_size: int = DEFAULT_PAGE_BATCH_SIZE,
) -> List[str]:
    """
    Convert a PDF into base64 JPEG strings, one per page, in page order.

    Pages are rendered in worker threads, ``page_batch_size`` at a time; the
    next batch starts only after the current one has finished.

    Args:
        pdf_bytes: Raw PDF file bytes.
        scale: Zoom factor relative to 72 DPI.
        jpeg_quality: JPEG compression quality (1-95).
        page_batch_size: Number of pages rendered concurrently.

    Returns:
        List of base64-encoded JPEG images. Pages that produced no image are
        dropped.

    Raises:
        DocumentProcessingError: If the document cannot be opened or a page
            fails to render.
    """
    num_pages = await asyncio.to_thread(count_pdf_pages, pdf_bytes)
    dpi = max(1, round(BASE_DPI * scale))
    batch_size = max(1, page_batch_size)
    logger.info(f"Rendering {num_pages} PDF pages at {dpi} DPI")

    images: List[str] = []
    for start in range(1, num_pages + 1, batch_size):
        page_numbers = range(start, min(start + batch_size, num_pages + 1))
        batch = await asyncio.gather(
            *(
                asyncio.to_thread(_render_page, pdf_bytes, page_number, dpi, jpeg_quality)
                for page_number in page_numbers
            )
        )
        images.extend(image for image in batch if image)
        logger.debug(f"Rendered pages {page_numbers.start}-{page_numbers.stop - 1}")

    logger.info(f"Rendered {len(images)} of {num_pages} pages")
    return images
