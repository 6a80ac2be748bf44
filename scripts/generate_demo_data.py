#!/usr/bin/env python3
"""Generate a synthetic journal-entry CSV for the MF adjustment demo.

Each unit gets a mix of GL 500x manufacturing debits, GL 5104 credits (and the
occasional 5104 debit), service-charge lines that must never be adjusted, and
other GL activity. The last unit has no 5104 rows at all.
"""

from __future__ import annotations

import argparse
import csv
import random
from datetime import date, timedelta
from pathlib import Path
from typing import Iterable

FIELDNAMES = [
    "UNIT_NUMBER",
    "GL_ACCOUNT",
    "TRANSACTION",
    "SOURCE",
    "REFERENCE",
    "DEBIT_AMOUNT",
    "CREDIT_AMOUNT",
]
MF_ACCOUNTS = ["5001", "5002", "5003", "5005"]
OTHER_ACCOUNTS = ["1200", "2100", "4000", "6100"]
SOURCES = ["AP", "GJ", "INV", "PR"]
SERVICE_CHARGE_REFS = ["SERVICE CHARGE", "Serv Fee", "SERVICE SALES"]
MF_REFS = ["Flour", "Cheese", "Produce", "Paper goods", "Beverage"]


def write_csv(path: Path, rows: Iterable[dict], fieldnames: list[str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)


def _line(unit: str, gl: str, txn: str, source: str, ref: str, debit: float, credit: float) -> dict:
    return {
        "UNIT_NUMBER": unit,
        "GL_ACCOUNT": gl,
        "TRANSACTION": txn,
        "SOURCE": source,
        "REFERENCE": ref,
        "DEBIT_AMOUNT": f"{debit:.2f}" if debit else "",
        "CREDIT_AMOUNT": f"{credit:.2f}" if credit else "",
    }


def generate(args: argparse.Namespace) -> list[dict]:
    rng = random.Random(args.seed)
    start = date.today() - timedelta(days=30)
    rows: list[dict] = []

    units = [str(100 + i) for i in range(args.units)]
    for idx, unit in enumerate(units):
        no_5104 = idx == len(units) - 1
        for n in range(args.lines_per_unit):
            txn = f"JE-{start + timedelta(days=rng.randint(0, 29)):%Y%m%d}-{unit}-{n:03d}"
            source = rng.choice(SOURCES)
            roll = rng.random()
            if roll < 0.45:
                rows.append(
                    _line(unit, rng.choice(MF_ACCOUNTS), txn, source, rng.choice(MF_REFS),
                          round(rng.uniform(25.0, 1500.0), 2), 0.0)
                )
            elif roll < 0.55:
                rows.append(
                    _line(unit, rng.choice(MF_ACCOUNTS), txn, source, rng.choice(SERVICE_CHARGE_REFS),
                          round(rng.uniform(5.0, 80.0), 2), 0.0)
                )
            elif roll < 0.75 and not no_5104:
                credit = round(rng.uniform(10.0, 400.0), 2)
                debit = round(rng.uniform(0.0, 60.0), 2) if rng.random() < 0.2 else 0.0
                rows.append(_line(unit, "5104", txn, source, "Rebate", debit, credit))
            else:
                amount = round(rng.uniform(10.0, 900.0), 2)
                if rng.random() < 0.5:
                    rows.append(_line(unit, rng.choice(OTHER_ACCOUNTS), txn, source, "", amount, 0.0))
                else:
                    rows.append(_line(unit, rng.choice(OTHER_ACCOUNTS), txn, source, "", 0.0, amount))

    write_csv(args.output, rows, FIELDNAMES)
    print(f"Wrote {len(rows)} journal rows for {len(units)} units to {args.output}")
    return rows


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Generate a synthetic journal-entry CSV.")
    p.add_argument("--seed", type=int, default=42)
    p.add_argument("--units", type=int, default=6)
    p.add_argument("--lines-per-unit", type=int, default=20)
    p.add_argument("--output", type=Path, default=Path("data/journal_entries.csv"))
    return p.parse_args()


if __name__ == "__main__":
    generate(parse_args())
