"""Domain models for the fee workbook importer.

Configuration, workbook, parsed row, lookup entity and result dataclasses used
throughout the application.
"""

from .config_models import ColumnAliases, DatabaseConfig, HeaderMarkers, ImportConfig, StudentDefaults
from .entities import AcademicYear, AdminUser, ImportedEnrollment, ImportedStudent, StudentImport, SubClass
from .error_record import ErrorRecord
from .import_result import CleanupResult, ImportResult, SectionResult
from .student_record import ParsedSheet, ParsedStudentRecord
from .workbook import SheetData, SheetStatistics, WorkbookAnalysis

__all__ = [
    # Configuration models
    "ColumnAliases",
    "DatabaseConfig",
    "HeaderMarkers",
    "ImportConfig",
    "StudentDefaults",
    # Workbook / parsing models
    "SheetData",
    "SheetStatistics",
    "WorkbookAnalysis",
    "ParsedSheet",
    "ParsedStudentRecord",
    # Store entities
    "AcademicYear",
    "AdminUser",
    "ImportedEnrollment",
    "ImportedStudent",
    "StudentImport",
    "SubClass",
    # Results
    "CleanupResult",
    "ErrorRecord",
    "ImportResult",
    "SectionResult",
]
