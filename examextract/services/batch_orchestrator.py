"""Batch orchestration of document preparation and MCQ extraction.

A run moves through ``idle → analyzing → extracting`` and ends in
``complete``, ``error`` or ``idle`` (cancelled). Content units are grouped,
groups are dispatched in waves of bounded concurrency, and each group's
records are appended to the result store as soon as that group settles.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from examextract.clients.extraction_client import HTML_MEDIA_TYPE, FatalExtractionError
from examextract.config.configuration import ExtractionConfig, RenderingConfig, WordConfig
from examextract.ingestion.document_loader import (
    DocumentProcessingError,
    UnsupportedDocumentError,
    require_supported_kind,
)
from examextract.ingestion.docx_converter import convert_docx_to_chunks
from examextract.ingestion.pdf_rasterizer import rasterize_pdf
from examextract.models import (
    AppLanguage,
    DocumentKind,
    MCQRecord,
    ProcessingState,
    ProcessingStatus,
    UploadedDocument,
)
from examextract.services.result_store import ResultStore

logger = logging.getLogger(__name__)

PAGE_MEDIA_TYPE = "image/jpeg"
CANCELLED_MESSAGE = "Cancelled"


class Extractor(Protocol):
    async def extract(
        self,
        units: Sequence[str],
        media_type: str,
        language: AppLanguage = AppLanguage.AUTO,
    ) -> List[MCQRecord]: ...


class CancellationToken:
    """Cooperative cancel flag checked between waves.

    Cancelling stops new dispatches; calls already in flight run to
    completion and their records are kept.
    """

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


def group_units(units: Sequence[str], group_size: int) -> List[List[str]]:
    """Split units into consecutive groups of ``group_size`` (last may be shorter)."""
    size = max(1, group_size)
    return [list(units[i:i + size]) for i in range(0, len(units), size)]


class BatchOrchestrator:
    """Runs one document through preparation and batched extraction."""

    def __init__(
        self,
        extractor: Extractor,
        store: ResultStore,
        *,
        extraction: ExtractionConfig = ExtractionConfig(),
        rendering: RenderingConfig = RenderingConfig(),
        word: WordConfig = WordConfig(),
        on_status: Optional[Callable[[ProcessingStatus], None]] = None,
    ):
        self._extractor = extractor
        self._store = store
        self._extraction = extraction
        self._rendering = rendering
        self._word = word
        self._on_status = on_status
        self._status = ProcessingStatus()

    @property
    def status(self) -> ProcessingStatus:
        return self._status

    @property
    def store(self) -> ResultStore:
        return self._store

    def _publish(self, status: ProcessingStatus) -> ProcessingStatus:
        self._status = status
        if self._on_status is not None:
            self._on_status(status)
        return status

    def _cancelled(self) -> ProcessingStatus:
        logger.info(f"Run cancelled with {len(self._store)} questions kept")
        return self._publish(ProcessingStatus(ProcessingState.IDLE, message=CANCELLED_MESSAGE))

    async def _prepare(
        self,
        document: UploadedDocument,
        kind: DocumentKind,
        token: CancellationToken,
    ) -> Tuple[List[str], str]:
        """Render or convert the document into content units."""
        if kind is DocumentKind.PDF:
            self._publish(
                ProcessingStatus(
                    ProcessingState.ANALYZING,
                    total=100,
                    current=0,
                    message="Rendering PDF pages...",
                )
            )
            if token.cancelled:
                return [], PAGE_MEDIA_TYPE
            images = await rasterize_pdf(
                document.data,
                scale=self._rendering.scale,
                jpeg_quality=self._rendering.jpeg_quality,
                page_batch_size=self._rendering.page_batch_size,
            )
            return images, PAGE_MEDIA_TYPE

        self._publish(
            ProcessingStatus(
                ProcessingState.ANALYZING,
                total=100,
                current=10,
                message="Reading Word document...",
            )
        )
        chunks = await convert_docx_to_chunks(
            document.data,
            max_chunk_size=self._word.max_chunk_chars,
        )
        return chunks, HTML_MEDIA_TYPE

    async def _extract_group(
        self,
        group_index: int,
        group: List[str],
        media_type: str,
        language: AppLanguage,
    ) -> int:
        """Extract one group and append its records. Non-fatal errors yield 0."""
        try:
            records = await self._extractor.extract(group, media_type, language)
        except FatalExtractionError:
            raise
        except Exception as e:
            logger.error(f"Extraction failed for group {group_index + 1}; continuing: {e}")
            return 0

        added = self._store.extend(records)
        logger.info(f"Group {group_index + 1}: {added} questions ({len(self._store)} total)")
        return added

    async def _process_groups(
        self,
        groups: List[List[str]],
        media_type: str,
        language: AppLanguage,
        token: CancellationToken,
    ) -> None:
        concurrency = max(1, self._extraction.concurrent_requests)
        total_waves = (len(groups) + concurrency - 1) // concurrency
        completed_groups = 0

        for wave_start in range(0, len(groups), concurrency):
            if token.cancelled:
                logger.info("Cancellation requested; no further groups dispatched")
                return

            wave = groups[wave_start:wave_start + concurrency]
            wave_number = wave_start // concurrency + 1
            self._publish(
                replace(self._status, message=f"Analyzing batch {wave_number} of {total_waves}...")
            )

            results = await asyncio.gather(
                *(
                    self._extract_group(wave_start + offset, group, media_type, language)
                    for offset, group in enumerate(wave)
                ),
                return_exceptions=True,
            )

            completed_groups += len(wave)
            self._publish(replace(self._status, current=completed_groups))

            for result in results:
                if isinstance(result, FatalExtractionError):
                    raise result

    async def run(
        self,
        document: UploadedDocument,
        language: AppLanguage = AppLanguage.AUTO,
        token: Optional[CancellationToken] = None,
    ) -> ProcessingStatus:
        """
        Extract MCQs from a document into the result store.

        The store is cleared at the start of every run. Pipeline failures are
        reported through the returned status rather than raised.

        Args:
            document: Uploaded file.
            language: Language hint for the model.
            token: Cancellation token; a fresh one is used if omitted.

        Returns:
            Terminal ProcessingStatus: COMPLETE, ERROR, or IDLE when cancelled.
        """
        token = token or CancellationToken()
        self._store.clear()
        self._publish(ProcessingStatus(ProcessingState.ANALYZING, message="Analyzing document..."))

        try:
            kind = require_supported_kind(document)
            logger.info(f"Processing {document.filename} ({kind.value}, {document.size_bytes} bytes)")
            units, media_type = await self._prepare(document, kind, token)

            if token.cancelled:
                return self._cancelled()

            groups = group_units(units, self._extraction.pages_per_group)
            logger.info(f"Prepared {len(units)} content units in {len(groups)} groups")
            self._publish(
                ProcessingStatus(
                    ProcessingState.EXTRACTING,
                    total=len(groups),
                    current=0,
                    message="AI extraction in progress...",
                )
            )

            await self._process_groups(groups, media_type, language, token)

        except (UnsupportedDocumentError, DocumentProcessingError) as e:
            logger.error(f"Could not prepare {document.filename}: {e}")
            return self._publish(ProcessingStatus(ProcessingState.ERROR, message=str(e)))
        except FatalExtractionError as e:
            logger.error(f"Extraction aborted: {e}")
            return self._publish(ProcessingStatus(ProcessingState.ERROR, message=str(e)))
        except Exception as e:
            logger.exception(f"Unexpected failure while processing {document.filename}")
            return self._publish(
                ProcessingStatus(ProcessingState.ERROR, message=f"Processing failed: {e}")
            )

        if token.cancelled:
            return self._cancelled()

        logger.info(f"Extraction complete: {len(self._store)} questions from {document.filename}")
        return self._publish(
            ProcessingStatus(
                ProcessingState.COMPLETE,
                message=f"Extraction complete! Found {len(self._store)} questions.",
            )
        )
