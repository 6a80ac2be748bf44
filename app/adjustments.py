from __future__ import annotations

import csv
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO

logger = logging.getLogger(__name__)

UNIT_COL = "UNIT_NUMBER"
GL_COL = "GL_ACCOUNT"
DEBIT_COL = "DEBIT_AMOUNT"
CREDIT_COL = "CREDIT_AMOUNT"
REFERENCE_COL = "REFERENCE"
FLAG_COL = "ADJUSTMENT_FLAG"
TOTAL_ADJUSTED_COL = "Total Adjusted"
SERVICE_CHARGE_COL = "IS_SERVICE_CHARGE"
CONSOLIDATED_COL = "ConsolidatedCreditsDebits"

REQUIRED_COLUMNS = [UNIT_COL, GL_COL, DEBIT_COL, CREDIT_COL]
DERIVED_COLUMNS = [REFERENCE_COL, FLAG_COL, TOTAL_ADJUSTED_COL, SERVICE_CHARGE_COL, CONSOLIDATED_COL]

SERVICE_CHARGE_KEYWORDS = (
    "SERVICE CHARGE",
    "SERVICE FEE",
    "SERV CHARGE",
    "SERV FEE",
    "SERVICE SALES",
    "SERVICE-CHARGE",
    "SERVICECHARGE",
)

RESIDUAL_GL = "5104"
MF_GL_PREFIX = "500"
GRAND_TOTAL = "GRAND TOTAL"

# Remaining residual within this distance of zero counts as exhausted.
FLOAT_NOISE = 1e-9


class JournalEntryError(Exception):
    """Fatal input problem; processing stops and nothing is written."""


class InputNotFoundError(JournalEntryError):
    pass


class EmptyInputError(JournalEntryError):
    pass


class MissingColumnsError(JournalEntryError):
    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"CSV must contain required columns: {', '.join(missing)}")


class MalformedInputError(JournalEntryError):
    pass


@dataclass
class AdjustmentOutcome:
    units_written: set[str] = field(default_factory=set)
    unapplied: dict[str, float] = field(default_factory=dict)


@dataclass
class UnitSummary:
    unit: str
    total_adjusted: float = 0.0
    rows_adjusted: int = 0
    sum_debit_reductions: float = 0.0
    consolidated_total: float = 0.0


@dataclass
class AdjustmentRun:
    rows: list[dict[str, Any]]
    headers: list[str]
    residuals: dict[str, float]
    outcome: AdjustmentOutcome
    summary: list[UnitSummary]

    @property
    def rows_adjusted(self) -> int:
        return sum(1 for row in self.rows if row.get(FLAG_COL))


# ---------------------------------------------------------------------------
# Loading / normalizing
# ---------------------------------------------------------------------------

def load_rows(source: Path | str | TextIO) -> tuple[list[dict[str, Any]], list[str]]:
    """Read a journal-entry CSV into ordered row dicts plus its header list."""
    if isinstance(source, (str, Path)):
        path = Path(source)
        try:
            f = path.open(newline="", encoding="utf-8-sig")
        except OSError as exc:
            raise InputNotFoundError(f"Input file not found or unreadable: {path}") from exc
        with f:
            return _read_rows(f)
    return _read_rows(source)


def _read_rows(f: TextIO) -> tuple[list[dict[str, Any]], list[str]]:
    reader = csv.DictReader(f, strict=True)
    rows: list[dict[str, Any]] = []
    try:
        for row in reader:
            if None in row:
                raise MalformedInputError(f"Line {reader.line_num} has more fields than the header")
            rows.append(dict(row))
    except (csv.Error, UnicodeDecodeError) as exc:
        raise MalformedInputError(f"Could not parse CSV near line {reader.line_num}: {exc}") from exc

    headers = list(reader.fieldnames or [])
    if not rows:
        raise EmptyInputError("CSV file is empty or has no data rows")
    missing = [col for col in REQUIRED_COLUMNS if col not in headers]
    if missing:
        raise MissingColumnsError(missing)
    logger.info("Loaded %d journal rows (%d columns)", len(rows), len(headers))
    return rows, headers


def output_columns(headers: list[str]) -> list[str]:
    return list(headers) + [col for col in DERIVED_COLUMNS if col not in headers]


def to_float(value: Any) -> float:
    if value is None:
        return 0.0
    try:
        number = float(str(value).strip())
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def prepare_columns(rows: list[dict[str, Any]]) -> None:
    for row in rows:
        row[DEBIT_COL] = to_float(row.get(DEBIT_COL))
        row[CREDIT_COL] = to_float(row.get(CREDIT_COL))
        row[UNIT_COL] = _text(row.get(UNIT_COL))
        row[GL_COL] = _text(row.get(GL_COL))
        row[REFERENCE_COL] = _text(row.get(REFERENCE_COL))
        row[FLAG_COL] = ""
        row[TOTAL_ADJUSTED_COL] = None


# ---------------------------------------------------------------------------
# Classification / residuals
# ---------------------------------------------------------------------------

def is_service_charge(row: dict[str, Any]) -> bool:
    account = _text(row.get(GL_COL)).upper()
    reference = _text(row.get(REFERENCE_COL)).upper()
    return any(kw in account or kw in reference for kw in SERVICE_CHARGE_KEYWORDS)


def mark_service_charges(rows: list[dict[str, Any]]) -> int:
    flagged = 0
    for row in rows:
        row[SERVICE_CHARGE_COL] = is_service_charge(row)
        flagged += row[SERVICE_CHARGE_COL]
    logger.info("Flagged %d service-charge rows", flagged)
    return flagged


def calculate_residuals(rows: list[dict[str, Any]]) -> dict[str, float]:
    """Net GL 5104 balance (credits - debits) per unit."""
    sums: dict[str, dict[str, float]] = {}
    for row in rows:
        if RESIDUAL_GL not in row[GL_COL]:
            continue
        acc = sums.setdefault(row[UNIT_COL], {"credits": 0.0, "debits": 0.0})
        acc["credits"] += row[CREDIT_COL]
        acc["debits"] += row[DEBIT_COL]
    return {unit: acc["credits"] - acc["debits"] for unit, acc in sums.items()}


# ---------------------------------------------------------------------------
# Distribution
# ---------------------------------------------------------------------------

def find_mf_rows(rows: list[dict[str, Any]], unit: str) -> list[dict[str, Any]]:
    return [
        row
        for row in rows
        if row[UNIT_COL] == unit
        and row[GL_COL].startswith(MF_GL_PREFIX)
        and not row.get(SERVICE_CHARGE_COL)
        and row[DEBIT_COL] > 0
    ]


def _adjust_row(
    row: dict[str, Any],
    adjustment: float,
    original: float,
    unit: str,
    residual_initial: float,
    units_written: set[str],
) -> None:
    row[DEBIT_COL] = original - adjustment
    row[FLAG_COL] = f"Adjusted by {adjustment:.2f} (was {original:.2f})"
    # Only the first adjusted row of a unit carries the unit total.
    if unit not in units_written:
        row[TOTAL_ADJUSTED_COL] = residual_initial
        units_written.add(unit)


def apply_adjustments(rows: list[dict[str, Any]], residuals: dict[str, float]) -> AdjustmentOutcome:
    """Spread each positive unit residual over its MF debits, largest first per account."""
    outcome = AdjustmentOutcome()
    for unit, residual_initial in residuals.items():
        residual_initial = float(residual_initial)
        residual = residual_initial
        if residual <= 0:
            continue

        mf_rows = find_mf_rows(rows, unit)
        if not mf_rows:
            logger.info("Unit %s has residual %.2f but no eligible MF debits", unit, residual)
            continue

        mf_rows.sort(key=lambda row: (row[GL_COL], -row[DEBIT_COL]))

        for row in mf_rows:
            if residual <= 0:
                break
            original = row[DEBIT_COL]
            if original <= 0:
                continue
            if original >= residual:
                _adjust_row(row, residual, original, unit, residual_initial, outcome.units_written)
                residual = 0.0
            else:
                _adjust_row(row, original, original, unit, residual_initial, outcome.units_written)
                residual -= original
                if math.isclose(residual, 0.0, abs_tol=FLOAT_NOISE):
                    residual = 0.0

        if residual > 0:
            outcome.unapplied[unit] = residual
            logger.warning(
                "Unit %s: MF debits exhausted with %.2f of %.2f residual unapplied",
                unit,
                residual,
                residual_initial,
            )
    return outcome


def calculate_consolidated(rows: list[dict[str, Any]]) -> None:
    for row in rows:
        diff = row[CREDIT_COL] - row[DEBIT_COL]
        # 5104 rows keep their sign; everything else is reported as a magnitude.
        row[CONSOLIDATED_COL] = diff if RESIDUAL_GL in row[GL_COL] else abs(diff)


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

def extract_original_debit(flag: Any, current_debit: float) -> float:
    """Recover the pre-adjustment debit from an ``ADJUSTMENT_FLAG`` note."""
    text = _text(flag)
    if "was" not in text:
        return current_debit
    tail = text.rsplit("was", 1)[-1].strip().replace(")", "").strip()
    try:
        original = float(tail)
    except ValueError:
        return current_debit
    return original if math.isfinite(original) else current_debit


def debit_reduction(row: dict[str, Any]) -> float:
    current = row[DEBIT_COL]
    return max(extract_original_debit(row.get(FLAG_COL), current) - current, 0.0)


def build_summary(rows: list[dict[str, Any]]) -> list[UnitSummary]:
    per_unit: dict[str, UnitSummary] = {}
    for row in rows:
        unit = _text(row.get(UNIT_COL))
        summary = per_unit.setdefault(unit, UnitSummary(unit=unit))
        summary.total_adjusted += to_float(row.get(TOTAL_ADJUSTED_COL))
        if row.get(FLAG_COL):
            summary.rows_adjusted += 1
        summary.sum_debit_reductions += debit_reduction(row)
        summary.consolidated_total += to_float(row.get(CONSOLIDATED_COL))

    ordered = sorted(per_unit.values(), key=lambda s: s.unit)
    ordered.append(
        UnitSummary(
            unit=GRAND_TOTAL,
            total_adjusted=sum(s.total_adjusted for s in ordered),
            rows_adjusted=sum(s.rows_adjusted for s in ordered),
            sum_debit_reductions=sum(s.sum_debit_reductions for s in ordered),
            consolidated_total=sum(s.consolidated_total for s in ordered),
        )
    )
    return ordered


def apply_residual_overrides(residuals: dict[str, float], overrides: dict[str, float]) -> None:
    """Replace residuals for units already in the map; unknown units are ignored."""
    for unit, value in overrides.items():
        if unit not in residuals:
            logger.warning("Ignoring residual override for unit %s: no GL 5104 activity", unit)
            continue
        residuals[unit] = value


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def run_adjustments(
    source: Path | str | TextIO,
    residual_overrides: dict[str, float] | None = None,
) -> AdjustmentRun:
    rows, headers = load_rows(source)
    prepare_columns(rows)
    mark_service_charges(rows)
    residuals = calculate_residuals(rows)
    if residual_overrides:
        apply_residual_overrides(residuals, residual_overrides)
    outcome = apply_adjustments(rows, residuals)
    calculate_consolidated(rows)
    summary = build_summary(rows)

    run = AdjustmentRun(rows=rows, headers=headers, residuals=residuals, outcome=outcome, summary=summary)
    logger.info(
        "Adjusted %d of %d rows across %d units with 5104 activity",
        run.rows_adjusted,
        len(rows),
        len(residuals),
    )
    return run
