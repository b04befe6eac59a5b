"""Tests for batch orchestration of extraction runs."""

import io

import pytest
from openpyxl import load_workbook

from examextract.clients import ExtractionError, FatalExtractionError
from examextract.config import ExtractionConfig
from examextract.ingestion import DOCX_MEDIA_TYPE, PDF_MEDIA_TYPE, DocumentProcessingError, encode_chunk
from examextract.models import AppLanguage, ProcessingState, UploadedDocument
from examextract.services import BatchOrchestrator, CancellationToken, ResultStore, export_to_xlsx_bytes, group_units
from examextract.services import batch_orchestrator

from tests.conftest import FakeExtractor, make_record


PDF_DOCUMENT = UploadedDocument(filename="exam.pdf", content_type=PDF_MEDIA_TYPE, data=b"%PDF-1.7")
DOCX_DOCUMENT = UploadedDocument(filename="exam.docx", content_type=DOCX_MEDIA_TYPE, data=b"PK")


@pytest.fixture
def fake_pages(monkeypatch):
    """Replace PDF rendering with a fixed list of page strings."""

    def install(pages):
        calls = []

        async def fake_rasterize(pdf_bytes, **kwargs):
            calls.append(kwargs)
            if isinstance(pages, Exception):
                raise pages
            return list(pages)

        monkeypatch.setattr(batch_orchestrator, "rasterize_pdf", fake_rasterize)
        return calls

    return install


def _orchestrator(extractor, *, group_size=1, concurrency=3, statuses=None, store=None):
    return BatchOrchestrator(
        extractor,
        store or ResultStore(),
        extraction=ExtractionConfig(pages_per_group=group_size, concurrent_requests=concurrency),
        on_status=statuses.append if statuses is not None else None,
    )


class TestGroupUnits:
    """Test unit grouping."""

    def test_last_group_may_be_short(self):
        assert group_units(["a", "b", "c", "d", "e"], 2) == [["a", "b"], ["c", "d"], ["e"]]

    def test_no_units(self):
        assert group_units([], 4) == []


class TestBatchOrchestrator:
    """Test run lifecycle, partial failures and cancellation."""

    @pytest.mark.asyncio
    async def test_pdf_end_to_end_export(self, fake_pages):
        """A two-page PDF with 3 + 2 questions exports a header and five rows."""
        fake_pages(["page-1", "page-2"])
        per_page = {"page-1": 3, "page-2": 2}

        def handler(units):
            return [make_record(question=f"{unit} q{i}") for unit in units for i in range(per_page[unit])]

        orchestrator = _orchestrator(FakeExtractor(handler))

        status = await orchestrator.run(PDF_DOCUMENT)

        assert status.state is ProcessingState.COMPLETE
        assert status.message == "Extraction complete! Found 5 questions."
        assert len(orchestrator.store) == 5

        sheet = load_workbook(io.BytesIO(export_to_xlsx_bytes(orchestrator.store))).active
        assert sheet.max_row == 6

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_other_groups(self, fake_pages):
        fake_pages([f"u{i}" for i in range(1, 6)])

        def handler(units):
            if units == ["u2"]:
                raise ExtractionError("malformed JSON")
            return [make_record(question=unit) for unit in units]

        extractor = FakeExtractor(handler)
        orchestrator = _orchestrator(extractor)

        status = await orchestrator.run(PDF_DOCUMENT)

        assert status.state is ProcessingState.COMPLETE
        assert len(extractor.calls) == 5
        assert sorted(record.question for record in orchestrator.store) == ["u1", "u3", "u4", "u5"]

    @pytest.mark.asyncio
    async def test_records_keep_group_order_within_waves(self, fake_pages):
        fake_pages([f"u{i}" for i in range(1, 8)])
        orchestrator = _orchestrator(FakeExtractor(), group_size=2, concurrency=1)

        await orchestrator.run(PDF_DOCUMENT)

        assert [record.question for record in orchestrator.store] == [
            f"Question from u{i}" for i in range(1, 8)
        ]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, fake_pages):
        fake_pages([f"u{i}" for i in range(1, 8)])
        extractor = FakeExtractor(delay=0.01)
        statuses = []
        orchestrator = _orchestrator(extractor, concurrency=3, statuses=statuses)

        await orchestrator.run(PDF_DOCUMENT)

        assert extractor.max_in_flight == 3
        batch_messages = [s.message for s in statuses if s.message and s.message.startswith("Analyzing batch")]
        assert batch_messages == [
            "Analyzing batch 1 of 3...",
            "Analyzing batch 2 of 3...",
            "Analyzing batch 3 of 3...",
        ]

    @pytest.mark.asyncio
    async def test_status_progression(self, fake_pages):
        fake_pages(["a", "b", "c", "d"])
        statuses = []
        orchestrator = _orchestrator(FakeExtractor(), group_size=1, concurrency=2, statuses=statuses)

        await orchestrator.run(PDF_DOCUMENT)

        states = [status.state for status in statuses]
        assert states[0] is ProcessingState.ANALYZING
        assert states[-1] is ProcessingState.COMPLETE
        assert ProcessingState.EXTRACTING in states

        extracting = [status for status in statuses if status.state is ProcessingState.EXTRACTING]
        assert all(status.total == 4 for status in extracting)
        progress = [status.progress_percentage for status in extracting]
        assert progress == sorted(progress)
        assert progress[-1] == 100

    @pytest.mark.asyncio
    async def test_fatal_error_aborts_run(self, fake_pages):
        fake_pages(["u1", "u2", "u3", "u4"])

        def handler(units):
            if units == ["u2"]:
                raise FatalExtractionError("invalid API key")
            return [make_record(question=unit) for unit in units]

        extractor = FakeExtractor(handler)
        orchestrator = _orchestrator(extractor, concurrency=1)

        status = await orchestrator.run(PDF_DOCUMENT)

        assert status.state is ProcessingState.ERROR
        assert "invalid API key" in status.message
        assert [call[0] for call in extractor.calls] == [["u1"], ["u2"]]
        assert [record.question for record in orchestrator.store] == ["u1"]

    @pytest.mark.asyncio
    async def test_cancel_between_waves_keeps_records(self, fake_pages):
        fake_pages(["u1", "u2", "u3", "u4"])
        token = CancellationToken()

        def handler(units):
            token.cancel()
            return [make_record(question=unit) for unit in units]

        extractor = FakeExtractor(handler)
        orchestrator = _orchestrator(extractor, concurrency=2)

        status = await orchestrator.run(PDF_DOCUMENT, token=token)

        assert status.state is ProcessingState.IDLE
        assert status.message == "Cancelled"
        assert len(extractor.calls) == 2
        assert len(orchestrator.store) == 2

    @pytest.mark.asyncio
    async def test_cancel_before_rendering(self, fake_pages):
        calls = fake_pages(["u1"])
        token = CancellationToken()
        token.cancel()
        extractor = FakeExtractor()

        status = await _orchestrator(extractor).run(PDF_DOCUMENT, token=token)

        assert status.state is ProcessingState.IDLE
        assert calls == []
        assert extractor.calls == []

    @pytest.mark.asyncio
    async def test_unsupported_document(self):
        extractor = FakeExtractor()
        document = UploadedDocument(filename="scan.png", content_type="image/png", data=b"\x89PNG")

        status = await _orchestrator(extractor).run(document)

        assert status.state is ProcessingState.ERROR
        assert "scan.png" in status.message
        assert extractor.calls == []

    @pytest.mark.asyncio
    async def test_rendering_failure_is_reported(self, fake_pages):
        fake_pages(DocumentProcessingError("Failed to open PDF document: broken"))

        status = await _orchestrator(FakeExtractor()).run(PDF_DOCUMENT)

        assert status.state is ProcessingState.ERROR
        assert "broken" in status.message

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_reported(self, fake_pages):
        fake_pages(RuntimeError("disk on fire"))

        status = await _orchestrator(FakeExtractor()).run(PDF_DOCUMENT)

        assert status.state is ProcessingState.ERROR
        assert status.message == "Processing failed: disk on fire"

    @pytest.mark.asyncio
    async def test_empty_pdf_completes_with_nothing(self, fake_pages):
        fake_pages([])
        extractor = FakeExtractor()

        status = await _orchestrator(extractor).run(PDF_DOCUMENT)

        assert status.state is ProcessingState.COMPLETE
        assert extractor.calls == []

    @pytest.mark.asyncio
    async def test_word_document_uses_html_chunks(self, monkeypatch):
        chunks = [encode_chunk("<p>Q1</p>"), encode_chunk("<p>Q2</p>")]
        seen = {}

        async def fake_convert(docx_bytes, *, max_chunk_size):
            seen["max_chunk_size"] = max_chunk_size
            return chunks

        monkeypatch.setattr(batch_orchestrator, "convert_docx_to_chunks", fake_convert)
        extractor = FakeExtractor()

        status = await _orchestrator(extractor, group_size=1).run(DOCX_DOCUMENT, AppLanguage.ARABIC)

        assert status.state is ProcessingState.COMPLETE
        assert seen["max_chunk_size"] == 30000
        assert {call[1] for call in extractor.calls} == {"text/html"}
        assert {call[2] for call in extractor.calls} == {AppLanguage.ARABIC}
        assert [call[0] for call in extractor.calls] == [[chunks[0]], [chunks[1]]]

    @pytest.mark.asyncio
    async def test_store_is_cleared_between_runs(self, fake_pages):
        fake_pages(["u1"])
        store = ResultStore([make_record(question="stale")])

        await _orchestrator(FakeExtractor(), store=store).run(PDF_DOCUMENT)

        assert [record.question for record in store] == ["Question from u1"]
