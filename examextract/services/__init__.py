"""Service layer: orchestration, result storage, export and job tracking."""

from examextract.services.batch_orchestrator import (
    BatchOrchestrator,
    CancellationToken,
    group_units,
)
from examextract.services.export_service import (
    SPREADSHEET_HEADERS,
    build_workbook,
    export_to_text,
    export_to_xlsx_bytes,
    write_xlsx,
)
from examextract.services.job_service import (
    ExtractionJob,
    JobNotFoundError,
    JobService,
    create_job_service,
)
from examextract.services.result_store import (
    InvalidEditError,
    RecordNotFoundError,
    ResultStore,
)

__all__ = [
    # Orchestration
    "BatchOrchestrator",
    "CancellationToken",
    "group_units",
    # Export
    "SPREADSHEET_HEADERS",
    "build_workbook",
    "export_to_text",
    "export_to_xlsx_bytes",
    "write_xlsx",
    # Jobs
    "ExtractionJob",
    "JobNotFoundError",
    "JobService",
    "create_job_service",
    # Results
    "InvalidEditError",
    "RecordNotFoundError",
    "ResultStore",
]
