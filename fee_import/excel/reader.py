from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import asdict
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
from openpyxl.utils import get_column_letter

from fee_import.models.workbook import SheetData, SheetStatistics, WorkbookAnalysis

"""Sheet reader.

Reads every sheet of a fee workbook without assuming a header position and
exposes it as a raw cell matrix plus header-keyed records. Header detection
for class sheets is the row parser's job (fee_import.excel.row_parser).

.xlsx/.xlsm/.xls go through pandas.ExcelFile, .csv through pandas.read_csv as
a single sheet named after the file stem.
"""

logger = logging.getLogger(__name__)

CSV_SUFFIXES = {".csv"}
EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}


def _clean_cell(value: Any) -> Any:
    """Convert a pandas cell to a plain Python value (blank -> None)."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):  # pragma: no cover - array-like cells
        return value
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        return value.item()
    return value


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def dataframe_to_rows(df: pd.DataFrame) -> list[list[Any]]:
    """Raw matrix: trailing blank cells trimmed per row, fully blank rows kept as []."""
    rows: list[list[Any]] = []
    for raw in df.itertuples(index=False, name=None):
        cells = [_clean_cell(v) for v in raw]
        while cells and cells[-1] is None:
            cells.pop()
        rows.append(cells)
    return rows


def _header_keys(header_row: list[Any], width: int) -> list[str]:
    # 空ヘッダは __EMPTY, __EMPTY_1 ... / 重複ヘッダは _1, _2 を付与
    keys: list[str] = []
    seen: dict[str, int] = {}
    empty_count = 0
    for idx in range(width):
        cell = header_row[idx] if idx < len(header_row) else None
        if _is_blank(cell):
            key = "__EMPTY" if empty_count == 0 else f"__EMPTY_{empty_count}"
            empty_count += 1
        else:
            key = str(cell).strip()
            if key in seen:
                seen[key] += 1
                key = f"{key}_{seen[key]}"
            else:
                seen[key] = 0
        keys.append(key)
    return keys


def rows_to_records(rows: list[list[Any]]) -> list[dict[str, Any]]:
    """Header-keyed records: first row is the header, blank rows and blank cells omitted."""
    if not rows:
        return []
    width = max((len(r) for r in rows), default=0)
    keys = _header_keys(rows[0], width)
    records: list[dict[str, Any]] = []
    for row in rows[1:]:
        record = {keys[i]: v for i, v in enumerate(row) if not _is_blank(v)}
        if record:
            records.append(record)
    return records


def compute_statistics(df: pd.DataFrame, rows: list[list[Any]]) -> SheetStatistics:
    header = rows[0] if rows else []
    return SheetStatistics(
        total_rows=int(df.shape[0]),
        total_columns=int(df.shape[1]),
        used_rows=len(rows),
        has_headers=any(isinstance(c, str) for c in header),
        column_headers=list(header),
    )


def _range_ref(df: pd.DataFrame) -> str:
    last_col = get_column_letter(max(int(df.shape[1]), 1))
    return f"A1:{last_col}{max(int(df.shape[0]), 1)}"


def build_sheet(name: str, df: pd.DataFrame) -> SheetData:
    rows = dataframe_to_rows(df)
    return SheetData(
        name=name,
        statistics=compute_statistics(df, rows),
        raw_data=rows,
        formatted_data=rows_to_records(rows),
        range_ref=_range_ref(df),
    )


def _read_frames(path: Path, target_sheets: Iterable[str] | None) -> dict[str, pd.DataFrame]:
    targets = set(target_sheets) if target_sheets is not None else None
    suffix = path.suffix.lower()
    if suffix in CSV_SUFFIXES:
        name = path.stem
        if targets is not None and name not in targets:
            return {}
        df = pd.read_csv(
            path,
            header=None,
            dtype=object,
            skip_blank_lines=False,
            keep_default_na=False,
            na_values=[""],
        )
        return {name: df}

    dfs: dict[str, pd.DataFrame] = {}
    with pd.ExcelFile(path) as xls:
        for name in xls.sheet_names:
            if targets is not None and str(name) not in targets:
                continue
            # ヘッダなしで生読み (ヘッダ行検出は row_parser 側)
            dfs[str(name)] = xls.parse(name, header=None, dtype=object)
    return dfs


def read_workbook(path: Path, target_sheets: Iterable[str] | None = None) -> dict[str, SheetData]:
    """Read a workbook returning SheetData keyed by sheet name (file order).

    Parameters
    ----------
    path: workbook path (.xlsx/.xlsm/.xls/.csv)
    target_sheets: restrict to these sheet names (None = all sheets)

    Raises
    ------
    FileNotFoundError: the path does not resolve to a file
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")

    sheets: dict[str, SheetData] = {}
    for name, df in _read_frames(path, target_sheets).items():
        sheet = build_sheet(name, df)
        logger.debug(
            "sheet=%s rows=%d used_rows=%d cols=%d range=%s",
            name,
            sheet.statistics.total_rows,
            sheet.statistics.used_rows,
            sheet.statistics.total_columns,
            sheet.range_ref,
        )
        sheets[name] = sheet
    return sheets


def analyze_workbook(path: Path) -> WorkbookAnalysis:
    path = Path(path)
    sheets = read_workbook(path)
    logger.info("Found %d sheet(s): %s", len(sheets), ", ".join(sheets))
    return WorkbookAnalysis(file_name=path.name, file_path=path, sheets=sheets)


def _json_default(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def analysis_to_json(analysis: WorkbookAnalysis, indent: int = 2) -> str:
    """Serialise an analysis (datetimes ISO formatted)."""
    payload = {
        "fileName": analysis.file_name,
        "filePath": str(analysis.file_path),
        "totalSheets": analysis.total_sheets,
        "sheets": {
            name: {
                "name": sheet.name,
                "statistics": asdict(sheet.statistics),
                "rawData": sheet.raw_data,
                "formattedData": sheet.formatted_data,
                "range": sheet.range_ref,
            }
            for name, sheet in analysis.sheets.items()
        },
    }
    return json.dumps(payload, indent=indent, ensure_ascii=False, default=_json_default)
