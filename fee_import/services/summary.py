from __future__ import annotations

from ..models.import_result import CleanupResult, ImportResult, SectionResult

"""Summary line rendering.

Format:
SUMMARY sheets={processed}/{mapped} students={n} payments={n} failed_students={n}
payments_unrecorded={n} skipped_sheets={n} elapsed_sec={elapsed}
"""


def format_seconds(seconds: float) -> str:
    """Integers without a decimal point, tiny values without scientific notation."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def format_amount(amount: float) -> str:
    return str(int(amount)) if float(amount).is_integer() else str(amount)


def render_summary_line(result: ImportResult) -> str:
    """Render the SUMMARY line for an import run.

    >>> from datetime import datetime, timezone
    >>> t = datetime(2025, 9, 1, tzinfo=timezone.utc)
    >>> r = ImportResult(
    ...     academic_year="2025-2026", mapped_sheets=28, processed_sheets=2, skipped_sheets=26,
    ...     total_students=40, total_payments=31, failed_students=0, payments_unrecorded=0,
    ...     start_time=t, end_time=t, elapsed_seconds=2.0,
    ... )
    >>> render_summary_line(r)
    'SUMMARY sheets=2/28 students=40 payments=31 failed_students=0 payments_unrecorded=0 skipped_sheets=26 elapsed_sec=2'
    """
    return (
        f"SUMMARY sheets={result.processed_sheets}/{result.mapped_sheets} "
        f"students={result.total_students} "
        f"payments={result.total_payments} "
        f"failed_students={result.failed_students} "
        f"payments_unrecorded={result.payments_unrecorded} "
        f"skipped_sheets={result.skipped_sheets} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)}"
    )


def render_section_line(section: SectionResult) -> str:
    line = f"{section.sheet_name}: {section.students} students, {section.payments} payments"
    if section.failed_students:
        line += f", {section.failed_students} failed"
    if section.payments_unrecorded:
        line += f", {section.payments_unrecorded} payments not recorded"
    return line


def render_cleanup_line(result: CleanupResult) -> str:
    return (
        f"cleanup students={result.students} enrollments={result.enrollments} "
        f"school_fees={result.school_fees} payment_transactions={result.payment_transactions} "
        f"reset_sub_classes={len(result.reset_sub_classes)}"
    )
