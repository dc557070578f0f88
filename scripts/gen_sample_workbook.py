#!/usr/bin/env python3
"""Generate a synthetic fee workbook for manual import runs.

Each class sheet follows the layout of the real fee records:
- Row 1: school title
- Row 2: class / year caption
- Row 3: header row (SN, NAME, TOTAL EXPECTED, TOTAL PAID, DEBTH 1ST INST, PARENT CONTACT)
- Row 4+: student rows (a few with blank cells, as in real data)
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from fee_import.config.class_mapping import DEFAULT_CLASS_MAPPING

HEADER = ["SN", "NAME", "TOTAL EXPECTED", "TOTAL PAID", "DEBTH 1ST INST", "PARENT CONTACT"]

FIRST_NAMES = ["Jane", "John", "Grace", "Paul", "Mary", "Eric", "Linda", "Samuel", "Ruth", "Kevin"]
LAST_NAMES = ["Doe", "Nkeng", "Tabi", "Fon", "Achu", "Ngwa", "Mbah", "Tanyi", "Ewane", "Bih"]


def generate_sheet_rows(sheet: str, students: int, rng: np.random.Generator) -> list[list[Any]]:
    rows: list[list[Any]] = [
        ["SAMPLE SECONDARY SCHOOL - FEE RECORD 2025/2026"],
        [f"CLASS: {DEFAULT_CLASS_MAPPING.get(sheet, sheet)}"],
        list(HEADER),
    ]
    for sn in range(1, students + 1):
        name = f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}"
        expected = int(rng.choice([150000, 175000, 200000]))
        paid = int(rng.choice([0, 25000, 50000, 100000, expected]))
        contact = f"Parent - 6{rng.integers(70000000, 99999999)}" if rng.random() > 0.1 else "no phone"
        row: list[Any] = [sn, name, expected, paid, expected - paid, contact]
        # 実データ同様に一部セルを空欄にする
        if rng.random() < 0.1:
            row[2] = None
        rows.append(row)
    # 合計行など名前の無い行
    rows.append([None, None, None, None, None, None])
    rows.append(["TOTAL", None, None, None, None, None])
    return rows


def create_workbook(output_path: Path, sheets: list[str], students: int, seed: int = 42) -> None:
    rng = np.random.default_rng(seed)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        for sheet in sheets:
            df = pd.DataFrame(generate_sheet_rows(sheet, students, rng))
            df.to_excel(writer, sheet_name=sheet, header=False, index=False)

    print(f"Created workbook: {output_path}")
    print(f"  Sheets: {len(sheets)} ({', '.join(sheets)})")
    print(f"  Students per sheet: {students}")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate a synthetic class fee workbook",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Every mapped class sheet, 30 students each
  %(prog)s sample.xlsx

  # Two sheets, 5 students each
  %(prog)s small.xlsx --sheets 1N 2N --students 5
        """,
    )
    parser.add_argument("output", type=Path, help="Output .xlsx path")
    parser.add_argument(
        "--sheets", nargs="+", default=list(DEFAULT_CLASS_MAPPING), help="Sheet names (default: all mapped)"
    )
    parser.add_argument("--students", type=int, default=30, help="Students per sheet (default: 30)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    args = parser.parse_args()

    if args.students <= 0:
        print("Error: --students must be positive", file=sys.stderr)
        return 1

    try:
        create_workbook(args.output, args.sheets, args.students, args.seed)
    except Exception as e:
        print(f"Error generating workbook: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
