"""Shared fixtures and fakes for the test suite."""

import asyncio
from typing import Callable, List, Optional, Sequence

import httpx
import pytest
import yaml

from examextract.config import configuration
from examextract.models import AppLanguage, MCQRecord


def make_record(**overrides) -> MCQRecord:
    """Build an MCQRecord with sensible defaults."""
    values = {
        "question": "What is 2 + 2?",
        "choice_a": "3",
        "choice_b": "4",
        "choice_c": "5",
        "choice_d": "6",
        "correct_answer": "B",
    }
    values.update(overrides)
    return MCQRecord(**values)


OPENAI_URL = "https://api.openai.com/v1/chat/completions"


def api_status_error(error_class, status_code: int, message: str = "error"):
    """Build an openai APIStatusError subclass with a fake HTTP response."""
    response = httpx.Response(status_code, request=httpx.Request("POST", OPENAI_URL))
    return error_class(message, response=response, body=None)


def one_record_per_unit(units: List[str]) -> List[MCQRecord]:
    return [make_record(question=f"Question from {unit}") for unit in units]


class FakeExtractor:
    """Stand-in for ExtractionClient that records calls and concurrency."""

    def __init__(
        self,
        handler: Optional[Callable[[List[str]], List[MCQRecord]]] = None,
        delay: float = 0.0,
    ):
        self.handler = handler or one_record_per_unit
        self.delay = delay
        self.calls: List[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def extract(
        self,
        units: Sequence[str],
        media_type: str,
        language: AppLanguage = AppLanguage.AUTO,
    ) -> List[MCQRecord]:
        self.calls.append((list(units), media_type, language))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            return self.handler(list(units))
        finally:
            self.in_flight -= 1


@pytest.fixture
def fake_extractor():
    return FakeExtractor()


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Write a temporary config.yaml and point the loader at it."""
    config_content = {
        "openai": {"model": "gpt-4o-mini", "temperature": 0.1},
        "extraction": {
            "pages_per_group": 2,
            "concurrent_requests": 2,
            "max_attempts": 4,
            "backoff_base_seconds": 0.5,
        },
        "rendering": {"scale": 2.0, "jpeg_quality": 80, "page_batch_size": 3},
        "word": {"max_chunk_chars": 1000},
        "export": {"sheet_name": "Questions", "filename": "out.xlsx"},
        "logging": {"level": "DEBUG"},
    }
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.dump(config_content), encoding="utf-8")

    monkeypatch.setenv("CONFIG_PATH", str(config_path))
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    monkeypatch.setattr(configuration, "load_dotenv", lambda: None)

    # Reset the config singleton
    configuration.reset_config()

    yield config_path

    configuration.reset_config()
