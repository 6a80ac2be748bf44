#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app.adjustments import JournalEntryError
from app.config import LOG_FORMAT, LOG_LEVEL
from app.processor import process_journal_entries


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Apply GL 5104 residuals to MF debits and write an Excel report.")
    p.add_argument("--input", type=Path, required=True, help="Journal-entry CSV")
    p.add_argument("--output", type=Path, default=Path("Adjusted_JE.xlsx"), help="Workbook to write")
    p.add_argument("--json", type=Path, default=None, help="Optional path to write the result as JSON")
    return p.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    try:
        result = process_journal_entries(args.input, args.output)
    except JournalEntryError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    payload = json.dumps(result.as_dict(), indent=2)
    if args.json:
        args.json.parent.mkdir(parents=True, exist_ok=True)
        args.json.write_text(payload, encoding="utf-8")
    else:
        print(payload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
