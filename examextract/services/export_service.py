"""Spreadsheet and plain-text export of MCQ records."""

import io
from pathlib import Path
from typing import Iterable, List, Union

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from examextract.models import MCQRecord

DEFAULT_SHEET_NAME = "MCQs"

SPREADSHEET_HEADERS = [
    "Question",
    "Choice A",
    "Choice B",
    "Choice C",
    "Choice D",
    "Correct Answer",
    "Passage",
]

COLUMN_WIDTHS = [60, 20, 20, 20, 20, 15, 40]

TRANSCRIPT_SEPARATOR = "-" * 40


def record_to_row(record: MCQRecord) -> List[str]:
    return [
        record.question,
        record.choice_a,
        record.choice_b,
        record.choice_c,
        record.choice_d,
        record.correct_answer,
        record.passage or "",
    ]


def build_workbook(records: Iterable[MCQRecord], sheet_name: str = DEFAULT_SHEET_NAME) -> Workbook:
    """Build a workbook with a header row and one row per record."""
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = sheet_name

    worksheet.append(SPREADSHEET_HEADERS)
    for record in records:
        worksheet.append(record_to_row(record))

    for index, width in enumerate(COLUMN_WIDTHS, start=1):
        worksheet.column_dimensions[get_column_letter(index)].width = width

    return workbook


def export_to_xlsx_bytes(records: Iterable[MCQRecord], sheet_name: str = DEFAULT_SHEET_NAME) -> bytes:
    buffer = io.BytesIO()
    build_workbook(records, sheet_name).save(buffer)
    return buffer.getvalue()


def write_xlsx(
    records: Iterable[MCQRecord],
    path: Union[str, Path],
    sheet_name: str = DEFAULT_SHEET_NAME,
) -> Path:
    """Write the spreadsheet to ``path`` and return it."""
    path = Path(path)
    build_workbook(records, sheet_name).save(path)
    return path


def format_record_text(record: MCQRecord) -> str:
    lines = []
    if record.passage:
        lines.append(f"Passage: {record.passage}")
    lines.append(record.question)
    lines.append(f"A) {record.choice_a}")
    lines.append(f"B) {record.choice_b}")
    lines.append(f"C) {record.choice_c}")
    lines.append(f"D) {record.choice_d}")
    if record.choice_e:
        lines.append(f"E) {record.choice_e}")
    lines.append(f"Answer: {record.correct_answer or '-'}")
    return "\n".join(lines)


def export_to_text(records: Iterable[MCQRecord]) -> str:
    """Flatten records into a clipboard-friendly transcript."""
    return f"\n{TRANSCRIPT_SEPARATOR}\n".join(format_record_text(record) for record in records)
