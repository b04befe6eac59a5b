"""OpenAI client for extracting MCQs from page images and HTML chunks."""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from openai import AsyncOpenAI, OpenAIError
from tenacity import AsyncRetrying, RetryCallState, before_sleep_log, stop_after_attempt

from examextract.clients.retry_policy import ErrorKind, classify_error, retry_decision
from examextract.config.configuration import AppConfig, get_config
from examextract.ingestion.docx_converter import decode_chunk
from examextract.models import ANSWER_LETTERS, AppLanguage, MCQRecord

logger = logging.getLogger(__name__)

HTML_MEDIA_TYPE = "text/html"
DEFAULT_MODEL = "gpt-4o"
DEFAULT_TEMPERATURE = 0.1

REQUIRED_FIELDS = ("question", "choiceA", "choiceB", "choiceC", "choiceD")
OPTIONAL_FIELDS = ("choiceE", "correctAnswer", "passage")

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
# A lone letter, optionally written as "(b)", "b)", "b." or "b:"
_ANSWER_PATTERN = re.compile(rf"^\(?([{''.join(ANSWER_LETTERS)}])[).:]?$")


class ExtractionError(Exception):
    """Raised when one content unit cannot be turned into MCQ records."""

    pass


class FatalExtractionError(ExtractionError):
    """Raised when the model cannot be used at all (bad key, unknown model)."""

    pass


def _nullable_string(description: str) -> Dict[str, Any]:
    return {"type": ["string", "null"], "description": description}


MCQ_ITEM_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "question": {"type": "string", "description": "Question text."},
        "choiceA": {"type": "string", "description": "Option A"},
        "choiceB": {"type": "string", "description": "Option B"},
        "choiceC": {"type": "string", "description": "Option C"},
        "choiceD": {"type": "string", "description": "Option D"},
        "choiceE": _nullable_string("Option E, null if the question has only four options."),
        "correctAnswer": _nullable_string("Correct letter (A-E). Null if unknown."),
        "passage": _nullable_string(
            "The FULL text of the reading passage or context. "
            "MUST be repeated for EVERY question linked to it."
        ),
    },
    "required": list(REQUIRED_FIELDS + OPTIONAL_FIELDS),
    "additionalProperties": False,
}

# Structured outputs need an object at the root, so the array sits under "questions"
MCQ_RESPONSE_FORMAT: Dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "mcq_extraction",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "questions": {"type": "array", "items": MCQ_ITEM_SCHEMA},
            },
            "required": ["questions"],
            "additionalProperties": False,
        },
    },
}

ARABIC_INSTRUCTION = (
    "Processing Arabic Document (RTL). Standardize numbers to Western (1,2,3). "
    "Standardize Arabic letters (أ,ب,ج,د) to (A,B,C,D)."
)

SYSTEM_PROMPT_TEMPLATE = """
You are an expert Document Analysis AI specialized in extracting MCQs (Multiple Choice Questions) to structured JSON.
{language_instruction}

VISUAL DETECTION RULES (HIGHEST PRIORITY):
1. HIGHLIGHTS = CORRECT ANSWER: If an option has a background color (Yellow, Green, Gray, Pink), it IS the correct answer. This is the #1 signal.
2. MARKS: Checkmarks, circles around letters, or colored text (e.g., Red) indicate correct answers.
3. STYLES: Bold or Underline (if only one option has it) indicates the answer.
4. ANSWER KEY: If an answer-key table appears at the end of the input, it overrides every visual signal above.
5. NO SIGNAL: If nothing marks an answer, leave "correctAnswer" null. Never guess.

EXTRACTION RULES:
1. EXTRACT ALL: Process the entire input batch. Extract every single question found. Do not summarize.
2. PASSAGE LINKING (CRITICAL):
   - If a text/story/passage appears, it applies to the questions that follow it.
   - You MUST copy the FULL passage text into the "passage" field for EVERY question linked to it.
   - Even if the passage was on Page 1 and the question is on Page 2, include the passage.
3. CLEANUP: Remove "Q1", "1.", "a)" prefixes from values.
"""

USER_PROMPT = "Extract all MCQs from this content into the specified JSON format."


def build_system_prompt(language: AppLanguage) -> str:
    """Return the extraction instructions for the given language hint."""
    language_instruction = ARABIC_INSTRUCTION if language is AppLanguage.ARABIC else ""
    return SYSTEM_PROMPT_TEMPLATE.format(language_instruction=language_instruction)


def build_user_content(units: Sequence[str], media_type: str) -> List[Dict[str, Any]]:
    """
    Build the user message parts for one group of content units.

    Images are sent inline as base64 data URLs; HTML chunks are decoded and
    sent as text.
    """
    parts: List[Dict[str, Any]] = []
    for unit in units:
        if media_type == HTML_MEDIA_TYPE:
            parts.append({"type": "text", "text": decode_chunk(unit)})
        else:
            parts.append(
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{media_type};base64,{unit}", "detail": "high"},
                }
            )
    parts.append({"type": "text", "text": USER_PROMPT})
    return parts


def normalize_correct_answer(value: Optional[str]) -> str:
    """
    Reduce a model-supplied answer to a single letter A-E or "".

    ``"b)"`` becomes ``"B"``. Anything that is not a single letter with at
    most bracket or punctuation decoration (``"AB"``, ``"none"``, ``"N/A"``)
    becomes ``""``.
    """
    if not value:
        return ""
    match = _ANSWER_PATTERN.match(str(value).strip().upper())
    return match.group(1) if match else ""


def strip_code_fences(raw_text: str) -> str:
    return _CODE_FENCE.sub("", raw_text).strip()


def _optional_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _record_from_item(item: Any) -> Optional[MCQRecord]:
    """Validate one model item; returns None when a required field is missing."""
    if not isinstance(item, dict):
        logger.warning(f"Skipping non-object item in model output: {item!r:.80}")
        return None

    missing = [name for name in REQUIRED_FIELDS if not isinstance(item.get(name), str)]
    if missing or not item["question"].strip():
        logger.warning(f"Skipping item without required fields {missing or ['question']}")
        return None

    return MCQRecord(
        question=item["question"],
        choice_a=item["choiceA"],
        choice_b=item["choiceB"],
        choice_c=item["choiceC"],
        choice_d=item["choiceD"],
        choice_e=_optional_text(item.get("choiceE")),
        correct_answer=normalize_correct_answer(item.get("correctAnswer")),
        passage=_optional_text(item.get("passage")),
    )


def parse_mcq_response(raw_text: Optional[str]) -> List[MCQRecord]:
    """
    Parse the model's JSON answer into MCQRecords.

    Accepts a bare JSON array or an object holding the array under
    ``questions``, optionally wrapped in Markdown code fences.

    Raises:
        ExtractionError: If the text is not valid JSON of either shape.
    """
    if not raw_text:
        return []
    text = strip_code_fences(raw_text)
    if not text:
        return []

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Model returned invalid JSON: {e}") from e

    if isinstance(parsed, dict):
        parsed = parsed.get("questions")
    if not isinstance(parsed, list):
        raise ExtractionError(
            f"Model returned {type(parsed).__name__} where a list of questions was expected"
        )

    records = []
    for item in parsed:
        record = _record_from_item(item)
        if record is not None:
            records.append(record)
    return records


class ExtractionClient:
    """Sends content groups to the model and returns validated MCQRecords."""

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        model: str = DEFAULT_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        max_attempts: int = 3,
        backoff_base_seconds: float = 1.0,
    ):
        """Initialize the extraction client.

        Args:
            client: Async OpenAI client.
            model: Chat model with vision support.
            temperature: Sampling temperature; kept low for repeatable output.
            max_attempts: Attempts per call for transient failures.
            backoff_base_seconds: Delay before the first retry.
        """
        self._client = client
        self._model = model
        self._temperature = temperature
        self._max_attempts = max_attempts
        self._backoff_base_seconds = backoff_base_seconds

    def _decide(self, retry_state: RetryCallState):
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if error is None:
            return retry_decision(retry_state.attempt_number, ErrorKind.PERMANENT)
        return retry_decision(
            retry_state.attempt_number,
            classify_error(error),
            max_attempts=self._max_attempts,
            base_delay=self._backoff_base_seconds,
        )

    async def _create_completion(self, messages: List[Dict[str, Any]]) -> Any:
        """Call the chat completions API, retrying transient failures."""
        async for attempt in AsyncRetrying(
            retry=lambda state: self._decide(state).retry,
            wait=lambda state: self._decide(state).delay,
            stop=stop_after_attempt(self._max_attempts),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await self._client.chat.completions.create(
                    model=self._model,
                    messages=messages,
                    temperature=self._temperature,
                    response_format=MCQ_RESPONSE_FORMAT,
                )

    async def extract(
        self,
        units: Sequence[str],
        media_type: str,
        language: AppLanguage = AppLanguage.AUTO,
    ) -> List[MCQRecord]:
        """
        Extract MCQs from one group of content units.

        Args:
            units: Base64 page images or base64 HTML chunks.
            media_type: ``image/jpeg`` for pages, ``text/html`` for chunks.
            language: Language hint for the prompt.

        Returns:
            Validated records; empty when the model found nothing.

        Raises:
            FatalExtractionError: If the credential or model is rejected.
            ExtractionError: For any other failure, including exhausted retries.
        """
        messages = [
            {"role": "system", "content": build_system_prompt(language)},
            {"role": "user", "content": build_user_content(units, media_type)},
        ]

        try:
            response = await self._create_completion(messages)
        except OpenAIError as e:
            if classify_error(e) is ErrorKind.FATAL:
                raise FatalExtractionError(f"Model request rejected: {e}") from e
            raise ExtractionError(f"Model request failed: {e}") from e

        if not response.choices:
            return []
        message = response.choices[0].message
        if getattr(message, "refusal", None):
            logger.warning(f"Model refused extraction: {message.refusal}")
            return []

        records = parse_mcq_response(message.content)
        logger.info(f"Extracted {len(records)} questions from {len(units)} units")
        return records


def create_extraction_client(config: Optional[AppConfig] = None) -> ExtractionClient:
    """Create an ExtractionClient from configuration."""
    config = config or get_config()
    return ExtractionClient(
        AsyncOpenAI(api_key=config.openai.api_key),
        model=config.openai.model,
        temperature=config.openai.temperature,
        max_attempts=config.extraction.max_attempts,
        backoff_base_seconds=config.extraction.backoff_base_seconds,
    )
