from __future__ import annotations

import logging
import warnings
from collections.abc import Mapping
from datetime import UTC, datetime

from ..db.store import FeeStore
from ..excel.row_parser import HeaderNotFoundWarning, parse_student_rows
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ImportConfig
from ..models.entities import AcademicYear, AdminUser, StudentImport, SubClass
from ..models.error_record import ErrorRecord
from ..models.import_result import CleanupResult, ImportResult, SectionResult
from ..models.student_record import ParsedStudentRecord
from ..models.workbook import SheetData
from .cleanup import cleanup_imported
from .progress import ProgressTracker
from .summary import format_amount, render_cleanup_line, render_section_line

"""Import orchestration.

For every class mapping entry whose sheet exists in the workbook: find the
class-section, parse the sheet, and create Student + Enrollment + SchoolFees
(+ PaymentTransaction) per student, each student in its own transaction. A
failing student is rolled back, logged and skipped; the run goes on.
"""

logger = logging.getLogger(__name__)


class ImportAbortedError(Exception):
    """Fatal condition: the run cannot start (e.g. no current academic year)."""


def format_matricule(prefix: str, number: int) -> str:
    return f"{prefix}{number:04d}"


def payment_note(record: ParsedStudentRecord) -> str:
    return f"Imported from Excel - Original debt: {format_amount(record.debt)}"


def import_student(
    store: FeeStore,
    record: ParsedStudentRecord,
    sub_class: SubClass,
    academic_year: AcademicYear,
    admin: AdminUser | None,
    config: ImportConfig,
) -> StudentImport:
    """Create all records for one student inside a single transaction."""
    with store.transaction():
        number = store.next_matricule_number(config.matricule_sequence)
        matricule = format_matricule(config.matricule_prefix, number)
        student_id = store.create_student(
            matricule, record.name, academic_year.id, config.student_defaults
        )
        enrollment_id = store.create_enrollment(student_id, academic_year.id, sub_class)
        fee_id = store.create_school_fees(
            enrollment_id,
            academic_year.id,
            record.total_expected,
            record.total_paid,
            config.fee_due_date,
        )
        payment_id = None
        if record.total_paid > 0 and admin is not None:
            payment_id = store.create_payment_transaction(
                enrollment_id,
                academic_year.id,
                fee_id,
                record.total_paid,
                config.payment_method,
                admin.id,
                payment_note(record),
            )
    logger.debug(
        "student=%r matricule=%s phone=%s enrollment=%d fee=%d payment=%s",
        record.name,
        matricule,
        record.parent_phone,
        enrollment_id,
        fee_id,
        payment_id,
    )
    return StudentImport(
        matricule=matricule,
        student_id=student_id,
        enrollment_id=enrollment_id,
        fee_id=fee_id,
        payment_id=payment_id,
    )


def _import_section(
    sheet: SheetData,
    sub_class: SubClass,
    store: FeeStore,
    config: ImportConfig,
    academic_year: AcademicYear,
    admin: AdminUser | None,
    error_log: ErrorLogBuffer,
    source_name: str,
) -> SectionResult:
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", HeaderNotFoundWarning)
        parsed = parse_student_rows(sheet.raw_data, config.column_aliases, sheet_name=sheet.name)
    for w in caught:
        if issubclass(w.category, HeaderNotFoundWarning):
            logger.warning("Could not find header row in sheet %s", sheet.name)
            error_log.append(
                ErrorRecord.create(source_name, sheet.name, -1, "HEADER_NOT_FOUND", str(w.message))
            )

    if parsed.header_found:
        logger.info(
            "Found headers at row %d: %s",
            parsed.header_row_index + 1,
            [h for h in parsed.headers if h],
        )
        logger.info("Parsed %d student records", len(parsed.records))

    students = 0
    payments = 0
    failed = 0
    unrecorded = 0
    for record in parsed.records:
        try:
            created = import_student(store, record, sub_class, academic_year, admin, config)
        except Exception as e:
            failed += 1
            logger.error("Error importing student %r: %s", record.name, e, exc_info=True)
            error_log.append(
                ErrorRecord.create(
                    source_name, sheet.name, record.row_number, "STUDENT_IMPORT_ERROR",
                    f"{record.name}: {e}",
                )
            )
            continue
        students += 1
        if created.payment_created:
            payments += 1
        elif record.total_paid > 0:
            unrecorded += 1
            logger.warning(
                "Payment of %s for %r not recorded: no user with matricule %s",
                format_amount(record.total_paid),
                record.name,
                config.admin_matricule,
            )
            error_log.append(
                ErrorRecord.create(
                    source_name, sheet.name, record.row_number, "PAYMENT_NOT_RECORDED",
                    f"{record.name} ({created.matricule}): paid {format_amount(record.total_paid)}",
                )
            )

    # 今回の取込件数で上書き (加算ではない)
    store.set_sub_class_student_count(sub_class.id, students)

    return SectionResult(
        sheet_name=sheet.name,
        sub_class_name=sub_class.name,
        students=students,
        payments=payments,
        failed_students=failed,
        payments_unrecorded=unrecorded,
        discarded_rows=parsed.discarded_rows,
        header_found=parsed.header_found,
    )


def run_import(
    workbook: Mapping[str, SheetData],
    store: FeeStore,
    config: ImportConfig,
    *,
    cleanup: bool = False,
    source_name: str = "",
    error_log: ErrorLogBuffer | None = None,
) -> ImportResult:
    """Import every mapped sheet of ``workbook`` into the current academic year.

    Args:
        workbook: sheet name -> SheetData (see fee_import.excel.reader.read_workbook)
        store: database access
        config: import configuration (class mapping, aliases, defaults)
        cleanup: remove previously imported students of the year first
        source_name: workbook file name, used in the error log

    Raises:
        ImportAbortedError: no current academic year
        StoreError: a lookup or section update failed (per-student failures are isolated)
    """
    start_time = datetime.now(UTC)
    error_log = error_log if error_log is not None else ErrorLogBuffer()

    academic_year = store.find_current_academic_year()
    if academic_year is None:
        raise ImportAbortedError(
            "No current academic year found. Mark one academic year as current first."
        )
    logger.info("Using academic year: %s", academic_year.name)

    cleanup_result: CleanupResult | None = None
    if cleanup:
        logger.info("Cleaning up previously imported data...")
        cleanup_result = cleanup_imported(store, academic_year.id, config.matricule_prefix)
        logger.info(render_cleanup_line(cleanup_result))

    admin = store.find_user_by_matricule(config.admin_matricule)
    if admin is None:
        logger.warning(
            "No user with matricule %s: payments will not be recorded as transactions",
            config.admin_matricule,
        )

    store.prepare_matricule_sequence(config.matricule_sequence)

    mapping = config.class_mapping
    present = [token for token in mapping if token in workbook]
    for name in workbook:
        if name not in mapping:
            logger.warning('Sheet "%s" has no class mapping, skipping', name)

    sections: list[SectionResult] = []
    skipped = 0
    with ProgressTracker(len(present), description="Importing sheets") as progress:
        for token, sub_class_name in mapping.items():
            sheet = workbook.get(token)
            if sheet is None:
                logger.warning('Sheet "%s" not found in workbook, skipping', token)
                skipped += 1
                continue

            progress.start(token)
            logger.info("Processing %s -> %s", token, sub_class_name)
            sub_class = store.find_sub_class_by_name(sub_class_name)
            if sub_class is None:
                logger.warning('SubClass "%s" not found in database, skipping', sub_class_name)
                error_log.append(
                    ErrorRecord.create(
                        source_name, token, -1, "SUBCLASS_NOT_FOUND", f"sub class {sub_class_name!r} not found"
                    )
                )
                skipped += 1
                progress.finish()
                continue

            section = _import_section(
                sheet, sub_class, store, config, academic_year, admin, error_log, source_name
            )
            sections.append(section)
            logger.info(render_section_line(section))

            progress.set_postfix(
                students=sum(s.students for s in sections),
                payments=sum(s.payments for s in sections),
            )
            progress.finish()

    try:
        log_path = error_log.flush()
        if log_path is not None and error_log.total_records:
            logger.info("Error log written: %s (%d records)", log_path, error_log.total_records)
    except OSError as e:
        # エラーログ書き込み失敗で取込全体は失敗させない
        logger.warning("failed to write error log: %s", e)

    end_time = datetime.now(UTC)
    return ImportResult(
        academic_year=academic_year.name,
        mapped_sheets=len(mapping),
        processed_sheets=len(sections),
        skipped_sheets=skipped,
        total_students=sum(s.students for s in sections),
        total_payments=sum(s.payments for s in sections),
        failed_students=sum(s.failed_students for s in sections),
        payments_unrecorded=sum(s.payments_unrecorded for s in sections),
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        sections=sections,
        cleanup=cleanup_result,
    )
