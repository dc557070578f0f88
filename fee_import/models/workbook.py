from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

"""Workbook / sheet models produced by the sheet reader.

A workbook only lives for the duration of one import run; nothing here is
persisted.
"""

__all__ = [
    "SheetStatistics",
    "SheetData",
    "WorkbookAnalysis",
]


@dataclass(frozen=True)
class SheetStatistics:
    """Basic shape information for a single sheet."""
    total_rows: int  # used range height
    total_columns: int  # used range width
    used_rows: int  # len(raw_data)
    has_headers: bool  # first row contains a text cell
    column_headers: list[Any]  # first row as read


@dataclass(frozen=True)
class SheetData:
    """One sheet in three shapes: statistics, raw cell matrix, header-keyed records."""
    name: str
    statistics: SheetStatistics
    raw_data: list[list[Any]]  # blank cells are None, blank rows are []
    formatted_data: list[dict[str, Any]]  # keyed by first-row headers, blank rows skipped
    range_ref: str = "A1:A1"


@dataclass(frozen=True)
class WorkbookAnalysis:
    """Result of analysing a workbook file (sheet name -> SheetData, in file order)."""
    file_name: str
    file_path: Path
    sheets: dict[str, SheetData] = field(default_factory=dict)

    @property
    def total_sheets(self) -> int:
        return len(self.sheets)
