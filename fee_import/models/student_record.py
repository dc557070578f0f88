from __future__ import annotations

from dataclasses import dataclass, field

"""ParsedStudentRecord model.

A transient record derived from one data row of a class fee sheet. Records are
only built for rows with a non-blank name.
"""

__all__ = [
    "ParsedStudentRecord",
    "ParsedSheet",
]


@dataclass(frozen=True)
class ParsedStudentRecord:
    """Logical representation of one student row after header mapping."""
    row_number: int  # 1-based spreadsheet row
    name: str
    sn: int | None = None
    status: str = ""
    total_expected: float = 175000.0
    total_paid: float = 0.0
    debt: float = 0.0
    parent_contact: str = ""
    parent_phone: str = "000000000"


@dataclass(frozen=True)
class ParsedSheet:
    """Outcome of running the row parser over one sheet."""
    sheet_name: str
    header_row_index: int | None  # 0-based index into raw rows, None when not found
    headers: list[str] = field(default_factory=list)
    records: list[ParsedStudentRecord] = field(default_factory=list)
    discarded_rows: int = 0  # data rows dropped for a blank name

    @property
    def header_found(self) -> bool:
        return self.header_row_index is not None
