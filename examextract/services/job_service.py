"""In-memory registry of extraction runs for the HTTP API."""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from examextract.clients.extraction_client import create_extraction_client
from examextract.config.configuration import (
    AppConfig,
    ExportConfig,
    ExtractionConfig,
    RenderingConfig,
    WordConfig,
    get_config,
)
from examextract.ingestion.document_loader import require_supported_kind
from examextract.models import AppLanguage, ProcessingState, ProcessingStatus, UploadedDocument
from examextract.services.batch_orchestrator import BatchOrchestrator, CancellationToken, Extractor
from examextract.services.result_store import ResultStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_JOBS = 100


class JobNotFoundError(Exception):
    """Raised when no extraction job has the requested id."""

    pass


@dataclass
class ExtractionJob:
    """One upload and its extraction run."""

    id: str
    filename: str
    language: AppLanguage
    store: ResultStore
    token: CancellationToken
    status: ProcessingStatus = field(default_factory=ProcessingStatus)
    task: Optional["asyncio.Task[ProcessingStatus]"] = None
    subscribers: List["asyncio.Queue[ProcessingStatus]"] = field(default_factory=list)


class JobService:
    """Starts, tracks and cancels extraction jobs.

    Jobs live only in memory; nothing survives a restart. Once more than
    ``max_jobs`` are registered, the oldest finished jobs are dropped.
    """

    def __init__(
        self,
        extractor: Extractor,
        *,
        extraction: ExtractionConfig = ExtractionConfig(),
        rendering: RenderingConfig = RenderingConfig(),
        word: WordConfig = WordConfig(),
        export: ExportConfig = ExportConfig(),
        max_jobs: int = DEFAULT_MAX_JOBS,
    ):
        self._extractor = extractor
        self.export = export
        self._extraction = extraction
        self._rendering = rendering
        self._word = word
        self._max_jobs = max(1, max_jobs)
        self._jobs: Dict[str, ExtractionJob] = {}

    def _on_status(self, job: ExtractionJob, status: ProcessingStatus) -> None:
        job.status = status
        for queue in list(job.subscribers):
            queue.put_nowait(status)

    def _evict_finished_jobs(self) -> None:
        """Drop the oldest terminal jobs while the registry is over its cap."""
        excess = len(self._jobs) - self._max_jobs
        if excess <= 0:
            return
        # Dicts keep insertion order, so this walks oldest first
        finished = [job_id for job_id, job in self._jobs.items() if job.status.is_terminal]
        for job_id in finished[:excess]:
            del self._jobs[job_id]
            logger.info(f"Evicted finished job {job_id}")

    def start_job(
        self,
        document: UploadedDocument,
        language: AppLanguage = AppLanguage.AUTO,
    ) -> ExtractionJob:
        """
        Validate a document and schedule its extraction on the running loop.

        Raises:
            UnsupportedDocumentError: If the document is not PDF or DOCX.
        """
        require_supported_kind(document)

        job = ExtractionJob(
            id=uuid.uuid4().hex,
            filename=document.filename,
            language=language,
            store=ResultStore(),
            token=CancellationToken(),
            status=ProcessingStatus(ProcessingState.ANALYZING, message="Queued"),
        )
        orchestrator = BatchOrchestrator(
            self._extractor,
            job.store,
            extraction=self._extraction,
            rendering=self._rendering,
            word=self._word,
            on_status=lambda status: self._on_status(job, status),
        )
        job.task = asyncio.create_task(orchestrator.run(document, language, job.token))
        self._jobs[job.id] = job
        self._evict_finished_jobs()
        logger.info(f"Started job {job.id} for {document.filename}")
        return job

    def get_job(self, job_id: str) -> ExtractionJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(f"No extraction job with id '{job_id}'")
        return job

    def cancel_job(self, job_id: str) -> ExtractionJob:
        job = self.get_job(job_id)
        if job.status.is_processing:
            job.token.cancel()
            logger.info(f"Cancellation requested for job {job_id}")
        return job

    def subscribe(self, job_id: str) -> "asyncio.Queue[ProcessingStatus]":
        """Return a queue that receives the current status and every later one."""
        job = self.get_job(job_id)
        queue: "asyncio.Queue[ProcessingStatus]" = asyncio.Queue()
        queue.put_nowait(job.status)
        job.subscribers.append(queue)
        return queue

    def unsubscribe(self, job_id: str, queue: "asyncio.Queue[ProcessingStatus]") -> None:
        job = self._jobs.get(job_id)
        if job is not None and queue in job.subscribers:
            job.subscribers.remove(queue)


def create_job_service(config: Optional[AppConfig] = None) -> JobService:
    """Create a JobService backed by the configured OpenAI extraction client.

    Raises:
        ConfigurationError: If the configuration or API key is missing.
    """
    config = config or get_config()
    return JobService(
        create_extraction_client(config),
        extraction=config.extraction,
        rendering=config.rendering,
        word=config.word,
        export=config.export,
    )
