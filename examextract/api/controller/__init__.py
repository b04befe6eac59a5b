"""API controllers."""

from examextract.api.controller.extraction_controller import get_job_service
from examextract.api.controller.extraction_controller import router as extraction_router

__all__ = ["extraction_router", "get_job_service"]
