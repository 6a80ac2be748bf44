from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from app.adjustments import run_adjustments
from app.workbook import render_workbook

logger = logging.getLogger(__name__)


@dataclass
class ProcessingResult:
    total_rows: int
    rows_adjusted: int
    units_affected: int
    output_file: str
    unapplied_residuals: dict[str, float] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def process_journal_entries(
    input_path: Path | str,
    output_path: Path | str,
    residual_overrides: dict[str, float] | None = None,
) -> ProcessingResult:
    """Load, adjust and render one journal-entry CSV.

    Input errors raise before anything is written; ``units_affected`` counts
    every unit with GL 5104 activity, adjusted or not.
    """
    run = run_adjustments(Path(input_path), residual_overrides=residual_overrides)
    written = render_workbook(run.rows, run.headers, run.summary, Path(output_path))
    return ProcessingResult(
        total_rows=len(run.rows),
        rows_adjusted=run.rows_adjusted,
        units_affected=len(run.residuals),
        output_file=str(written),
        unapplied_residuals=dict(run.outcome.unapplied),
    )
