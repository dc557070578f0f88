from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

Every recoverable problem of an import run (missing section, missing header,
failed student, unrecorded payment) becomes one record. ``row=-1`` marks a
sheet-level problem where no spreadsheet row applies.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Workbook filename being imported
        sheet: Sheet name within the workbook
        row: Spreadsheet row number (1-based). -1 for sheet-level problems
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human readable description (student name, DB message, ...)
    """
    timestamp: str
    file: str
    sheet: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, sheet: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            sheet=sheet,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # dataclass -> dict で固定キーのみ出力
        return json.dumps(asdict(self), ensure_ascii=False)
