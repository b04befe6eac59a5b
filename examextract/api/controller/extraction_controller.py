"""HTTP and WebSocket controller for MCQ extraction jobs."""

import logging
from typing import List, Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Response,
    UploadFile,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from examextract.config.configuration import ConfigurationError
from examextract.ingestion.document_loader import UnsupportedDocumentError
from examextract.models import AppLanguage, MCQRecord, ProcessingStatus, UploadedDocument
from examextract.services.export_service import export_to_text, export_to_xlsx_bytes
from examextract.services.job_service import (
    ExtractionJob,
    JobNotFoundError,
    JobService,
    create_job_service,
)
from examextract.services.result_store import InvalidEditError, RecordNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/extractions", tags=["extractions"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_job_service: Optional[JobService] = None


def get_job_service() -> JobService:
    """Get or create the singleton JobService.

    Raises:
        HTTPException: 503 if the OpenAI credential or config is missing.
    """
    global _job_service
    if _job_service is None:
        try:
            _job_service = create_job_service()
        except ConfigurationError as e:
            logger.error(f"Extraction service unavailable: {e}")
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return _job_service


class StatusResponse(BaseModel):
    """Progress snapshot of a job."""

    state: str
    total: int
    current: int
    progress: int
    message: Optional[str] = None

    @classmethod
    def from_status(cls, processing_status: ProcessingStatus) -> "StatusResponse":
        return cls(
            state=processing_status.state.value,
            total=processing_status.total,
            current=processing_status.current,
            progress=processing_status.progress_percentage,
            message=processing_status.message,
        )


class RecordResponse(BaseModel):
    """One extracted question in wire format."""

    id: str
    question: str
    choiceA: str
    choiceB: str
    choiceC: str
    choiceD: str
    choiceE: Optional[str] = None
    correctAnswer: str = ""
    passage: Optional[str] = None

    @classmethod
    def from_record(cls, record: MCQRecord) -> "RecordResponse":
        return cls(**record.to_dict())


class JobResponse(BaseModel):
    """Job summary with its current records."""

    id: str
    filename: str
    language: str
    status: StatusResponse
    records: List[RecordResponse] = Field(default_factory=list)

    @classmethod
    def from_job(cls, job: ExtractionJob) -> "JobResponse":
        return cls(
            id=job.id,
            filename=job.filename,
            language=job.language.value,
            status=StatusResponse.from_status(job.status),
            records=[RecordResponse.from_record(record) for record in job.store],
        )


class RecordUpdate(BaseModel):
    """Edit of one record field."""

    field: str
    value: Optional[str] = None


def _get_job_or_404(service: JobService, job_id: str) -> ExtractionJob:
    try:
        return service.get_job(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post("", status_code=status.HTTP_202_ACCEPTED, response_model=JobResponse)
async def create_extraction(
    file: UploadFile = File(...),
    language: AppLanguage = Form(AppLanguage.AUTO),
    service: JobService = Depends(get_job_service),
) -> JobResponse:
    """Upload a PDF or DOCX and start extracting MCQs from it."""
    document = UploadedDocument(
        filename=file.filename or "upload",
        content_type=file.content_type or "",
        data=await file.read(),
    )
    try:
        job = service.start_job(document, language)
    except UnsupportedDocumentError as e:
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(e))
    return JobResponse.from_job(job)


@router.get("/{job_id}", response_model=JobResponse)
async def get_extraction(job_id: str, service: JobService = Depends(get_job_service)) -> JobResponse:
    return JobResponse.from_job(_get_job_or_404(service, job_id))


@router.post("/{job_id}/cancel", response_model=StatusResponse)
async def cancel_extraction(
    job_id: str, service: JobService = Depends(get_job_service)
) -> StatusResponse:
    """Stop dispatching further batches; questions found so far are kept."""
    try:
        job = service.cancel_job(job_id)
    except JobNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return StatusResponse.from_status(job.status)


@router.patch("/{job_id}/records/{record_id}", response_model=RecordResponse)
async def update_record(
    job_id: str,
    record_id: str,
    update: RecordUpdate,
    service: JobService = Depends(get_job_service),
) -> RecordResponse:
    job = _get_job_or_404(service, job_id)
    try:
        record = job.store.update(record_id, update.field, update.value)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidEditError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return RecordResponse.from_record(record)


@router.delete("/{job_id}/records/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_record(
    job_id: str,
    record_id: str,
    service: JobService = Depends(get_job_service),
) -> Response:
    job = _get_job_or_404(service, job_id)
    try:
        job.store.delete(record_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{job_id}/export.xlsx")
async def export_xlsx(job_id: str, service: JobService = Depends(get_job_service)) -> Response:
    job = _get_job_or_404(service, job_id)
    export_config = service.export
    return Response(
        content=export_to_xlsx_bytes(job.store, export_config.sheet_name),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{export_config.filename}"'},
    )


@router.get("/{job_id}/export.txt", response_class=PlainTextResponse)
async def export_text(job_id: str, service: JobService = Depends(get_job_service)) -> str:
    job = _get_job_or_404(service, job_id)
    return export_to_text(job.store)


@router.websocket("/{job_id}/ws")
async def extraction_progress(
    websocket: WebSocket,
    job_id: str,
    service: JobService = Depends(get_job_service),
) -> None:
    """
    WebSocket endpoint streaming job progress.

    Protocol:
    1. Client connects to /extractions/{job_id}/ws
    2. Server sends {"type": "status", "status": {...}, "found": N} on every change
    3. Server sends {"type": "done", "status": {...}, "found": N} at the end and closes
    4. On unknown job: {"type": "error", "content": "error message"}
    """
    await websocket.accept()

    try:
        queue = service.subscribe(job_id)
    except JobNotFoundError as e:
        await websocket.send_json({"type": "error", "content": str(e)})
        await websocket.close()
        return

    job = service.get_job(job_id)
    logger.info(f"WebSocket progress feed opened for job {job_id}")

    try:
        while True:
            processing_status = await queue.get()
            message_type = "status" if processing_status.is_processing else "done"
            await websocket.send_json(
                {
                    "type": message_type,
                    "status": StatusResponse.from_status(processing_status).model_dump(),
                    "found": len(job.store),
                }
            )
            if message_type == "done":
                break
        await websocket.close()
    except WebSocketDisconnect:
        logger.info(f"WebSocket progress feed closed by client for job {job_id}")
    finally:
        service.unsubscribe(job_id, queue)
