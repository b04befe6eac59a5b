"""Command-line entry point: extract MCQs from one exam document.

Usage:
    python main.py exam.pdf
    python main.py exam.docx --language arabic --output questions.xlsx --text questions.txt
"""

import argparse
import asyncio
import mimetypes
import signal
import sys
from pathlib import Path
from typing import List, Optional

from examextract.clients import create_extraction_client
from examextract.config import ConfigurationError, configure_logging, get_config
from examextract.ingestion import DOCX_MEDIA_TYPE, detect_document_kind
from examextract.models import AppLanguage, DocumentKind, ProcessingState, ProcessingStatus, UploadedDocument
from examextract.services import (
    BatchOrchestrator,
    CancellationToken,
    ResultStore,
    export_to_text,
    write_xlsx,
)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID_INPUT = 2
EXIT_CANCELLED = 130

mimetypes.add_type(DOCX_MEDIA_TYPE, ".docx")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Extract multiple-choice questions from a PDF or Word exam.")
    parser.add_argument("file", help="Path to a .pdf or .docx file")
    parser.add_argument(
        "--language",
        choices=[language.value for language in AppLanguage],
        default=AppLanguage.AUTO.value,
        help="Language hint for the model (default: auto)",
    )
    parser.add_argument("--output", help="Spreadsheet path (default from config.yaml)")
    parser.add_argument("--text", help="Also write a plain-text transcript to this path")
    return parser.parse_args(argv)


def print_status(status: ProcessingStatus) -> None:
    progress = f" ({status.progress_percentage}%)" if status.total else ""
    print(f"[{status.state.value}] {status.message or ''}{progress}", flush=True)


async def run_cli(args: argparse.Namespace) -> int:
    try:
        config = get_config()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    configure_logging(config)

    path = Path(args.file)
    if not path.is_file():
        print(f"File not found: {path}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    content_type, _ = mimetypes.guess_type(path.name)
    if detect_document_kind(content_type) is DocumentKind.UNKNOWN:
        print(f"Unsupported file type for {path.name}. Please pick a PDF or .docx file.", file=sys.stderr)
        return EXIT_INVALID_INPUT

    document = UploadedDocument(filename=path.name, content_type=content_type, data=path.read_bytes())
    store = ResultStore()
    orchestrator = BatchOrchestrator(
        create_extraction_client(config),
        store,
        extraction=config.extraction,
        rendering=config.rendering,
        word=config.word,
        on_status=print_status,
    )

    # Ctrl-C stops further batches but keeps what was already extracted
    token = CancellationToken()
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, token.cancel)
    except NotImplementedError:
        pass  # Windows event loops have no signal handlers

    status = await orchestrator.run(document, AppLanguage(args.language), token)

    if len(store):
        output_path = write_xlsx(store, args.output or config.export.filename, config.export.sheet_name)
        print(f"Wrote {len(store)} questions to {output_path}")
        if args.text:
            Path(args.text).write_text(export_to_text(store), encoding="utf-8")
            print(f"Wrote transcript to {args.text}")

    if status.state is ProcessingState.COMPLETE:
        return EXIT_OK
    if status.state is ProcessingState.IDLE:
        return EXIT_CANCELLED
    return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(asyncio.run(run_cli(parse_args())))
