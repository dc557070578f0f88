from __future__ import annotations

import re
from datetime import datetime, timezone

from fee_import.models.import_result import CleanupResult, ImportResult, SectionResult
from fee_import.services.summary import (
    format_amount,
    format_seconds,
    render_cleanup_line,
    render_section_line,
    render_summary_line,
)

SUMMARY_RE = re.compile(
    r"^SUMMARY sheets=(\d+)/(\d+) students=(\d+) payments=(\d+) failed_students=(\d+) "
    r"payments_unrecorded=(\d+) skipped_sheets=(\d+) elapsed_sec=(\d+(?:\.\d+)?)$"
)


def _result(**overrides) -> ImportResult:
    t = datetime(2025, 9, 1, tzinfo=timezone.utc)
    values = dict(
        academic_year="2025-2026",
        mapped_sheets=28,
        processed_sheets=3,
        skipped_sheets=25,
        total_students=60,
        total_payments=41,
        failed_students=1,
        payments_unrecorded=2,
        start_time=t,
        end_time=t,
        elapsed_seconds=1.23456,
    )
    values.update(overrides)
    return ImportResult(**values)


def test_summary_line_format():
    line = render_summary_line(_result())
    m = SUMMARY_RE.match(line)
    assert m is not None, line
    assert m.groups() == ("3", "28", "60", "41", "1", "2", "25", "1.235")


def test_summary_line_zero_elapsed():
    assert render_summary_line(_result(elapsed_seconds=0.0)).endswith("elapsed_sec=0")


def test_format_seconds():
    assert format_seconds(0) == "0"
    assert format_seconds(3.0) == "3"
    assert format_seconds(0.5) == "0.5"
    assert format_seconds(0.000123) == "0.000123"
    assert "e" not in format_seconds(0.0000012)


def test_format_amount():
    assert format_amount(50000.0) == "50000"
    assert format_amount(1250.5) == "1250.5"


def test_section_line():
    plain = SectionResult(sheet_name="2N", sub_class_name="FORM 2 N", students=12, payments=9)
    assert render_section_line(plain) == "2N: 12 students, 9 payments"
    noisy = SectionResult(
        sheet_name="2N", sub_class_name="FORM 2 N", students=12, payments=9,
        failed_students=1, payments_unrecorded=3,
    )
    assert render_section_line(noisy) == "2N: 12 students, 9 payments, 1 failed, 3 payments not recorded"


def test_cleanup_line():
    line = render_cleanup_line(
        CleanupResult(students=2, enrollments=2, school_fees=2, payment_transactions=1, reset_sub_classes=(3,))
    )
    assert line == "cleanup students=2 enrollments=2 school_fees=2 payment_transactions=1 reset_sub_classes=1"
