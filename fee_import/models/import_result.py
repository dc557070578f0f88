from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

"""Result models for import and cleanup runs.

These aggregate the counters printed in the per-section lines and the final
SUMMARY line.
"""


@dataclass(frozen=True)
class SectionResult:
    """Per sheet/section import statistics."""
    sheet_name: str
    sub_class_name: str
    students: int  # students created in this run
    payments: int  # payment transactions created
    failed_students: int = 0
    payments_unrecorded: int = 0  # paid > 0 but no admin user to attribute to
    discarded_rows: int = 0  # blank-name rows
    header_found: bool = True


@dataclass(frozen=True)
class CleanupResult:
    """Rows removed by the cleanup routine, per entity."""
    students: int = 0
    enrollments: int = 0
    school_fees: int = 0
    payment_transactions: int = 0
    reset_sub_classes: tuple[int, ...] = ()

    @property
    def total_rows(self) -> int:
        return self.students + self.enrollments + self.school_fees + self.payment_transactions


@dataclass(frozen=True)
class ImportResult:
    """Aggregated results for one import run."""
    academic_year: str
    mapped_sheets: int  # mapping entries considered
    processed_sheets: int  # sheets found in workbook and imported into a section
    skipped_sheets: int  # missing sheet or missing section
    total_students: int
    total_payments: int
    failed_students: int
    payments_unrecorded: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    sections: list[SectionResult] = field(default_factory=list)
    cleanup: CleanupResult | None = None
