"""Client modules for external services."""

from examextract.clients.extraction_client import (
    MCQ_RESPONSE_FORMAT,
    ExtractionClient,
    ExtractionError,
    FatalExtractionError,
    build_system_prompt,
    build_user_content,
    create_extraction_client,
    normalize_correct_answer,
    parse_mcq_response,
)
from examextract.clients.retry_policy import (
    ErrorKind,
    RetryDecision,
    classify_error,
    retry_decision,
)

__all__ = [
    "MCQ_RESPONSE_FORMAT",
    "ErrorKind",
    "ExtractionClient",
    "ExtractionError",
    "FatalExtractionError",
    "RetryDecision",
    "build_system_prompt",
    "build_user_content",
    "classify_error",
    "create_extraction_client",
    "normalize_correct_answer",
    "parse_mcq_response",
    "retry_decision",
]
