from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from app.adjustments import FLAG_COL, GRAND_TOTAL, UnitSummary, output_columns

logger = logging.getLogger(__name__)

DATA_SHEET = "AdjustedData"
SUMMARY_SHEET = "Summary"

SUMMARY_HEADERS = ["UNIT_NUMBER", "Total_Adjusted", "Rows_Adjusted", "Sum_Debit_Reductions", "Consolidated_Total"]
SUMMARY_WIDTHS = [15, 18, 18, 22, 20, 5, 80]
MAX_COLUMN_WIDTH = 60

RECAP_COLUMN = 7
RECAP_LINES = [
    "MF Deduction Logic Recap:",
    "• Service charges are excluded from deductions.",
    "• GL 5104 residual = Credits − Debits (signed). When residual > 0 (net credit), subtract from GL 500x MF debits.",
    "• Residual is distributed across the least number of GL 500x debit rows (largest first).",
    "• 'Total Adjusted' shows the net residual applied for the unit (written once on the first adjusted row).",
    "• 'ConsolidatedCreditsDebits' is recalculated after adjustments:",
    "  − For non-5104 rows: ABS(Credit − adjusted Debit).",
    "  − For 5104 rows: signed (Credit − adjusted Debit) (negative allowed).",
    "• Adjusted rows are highlighted in yellow on the AdjustedData sheet; header is frozen.",
]

YELLOW = PatternFill(start_color="FFFF00", end_color="FFFF00", fill_type="solid")
HEADER_FONT = Font(bold=True)
CENTER = Alignment(horizontal="center")


def _style_header(ws: Worksheet) -> None:
    for cell in ws[1]:
        cell.font = HEADER_FONT
        cell.alignment = CENTER


def _fill_row(ws: Worksheet, row_idx: int, fill: PatternFill, bold: bool = False) -> None:
    for cell in ws[row_idx]:
        cell.fill = fill
        if bold:
            cell.font = HEADER_FONT


def _auto_fit(ws: Worksheet, columns: list[str], rows: list[dict[str, Any]]) -> None:
    for idx, col in enumerate(columns, 1):
        longest = max([len(col)] + [len("" if r.get(col) is None else str(r.get(col))) for r in rows])
        ws.column_dimensions[get_column_letter(idx)].width = min(longest + 2, MAX_COLUMN_WIDTH)


def write_data_sheet(ws: Worksheet, rows: list[dict[str, Any]], headers: list[str]) -> None:
    columns = output_columns(headers)
    ws.title = DATA_SHEET
    ws.append(columns)
    _style_header(ws)

    for row in rows:
        ws.append([row.get(col) for col in columns])
        if row.get(FLAG_COL):
            _fill_row(ws, ws.max_row, YELLOW)

    ws.freeze_panes = "A2"
    _auto_fit(ws, columns, rows)


def write_summary_sheet(ws: Worksheet, summary: list[UnitSummary]) -> None:
    ws.title = SUMMARY_SHEET
    ws.append(SUMMARY_HEADERS)
    _style_header(ws)

    for record in summary:
        ws.append(
            [
                record.unit,
                record.total_adjusted,
                record.rows_adjusted,
                record.sum_debit_reductions,
                record.consolidated_total,
            ]
        )
        if record.unit == GRAND_TOTAL:
            _fill_row(ws, ws.max_row, YELLOW, bold=True)

    recap_start = ws.max_row + 3
    for offset, line in enumerate(RECAP_LINES):
        cell = ws.cell(row=recap_start + offset, column=RECAP_COLUMN, value=line)
        if offset == 0:
            cell.font = HEADER_FONT

    for idx, width in enumerate(SUMMARY_WIDTHS, 1):
        ws.column_dimensions[get_column_letter(idx)].width = width


def render_workbook(
    rows: list[dict[str, Any]],
    headers: list[str],
    summary: list[UnitSummary],
    output_path: Path,
) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    wb = Workbook()
    write_data_sheet(wb.active, rows, headers)
    write_summary_sheet(wb.create_sheet(), summary)
    wb.save(output_path)
    logger.info("Wrote workbook %s (%d data rows, %d units)", output_path, len(rows), len(summary) - 1)
    return output_path
