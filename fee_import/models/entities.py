from __future__ import annotations

from dataclasses import dataclass

"""Rows read from the school database for lookups, and creation results.

The importer never updates these lookup rows apart from the sub class
``current_students`` counter.
"""

__all__ = [
    "AcademicYear",
    "SubClass",
    "AdminUser",
    "ImportedStudent",
    "ImportedEnrollment",
    "StudentImport",
]


@dataclass(frozen=True)
class AcademicYear:
    id: int
    name: str


@dataclass(frozen=True)
class SubClass:
    """A class-section such as ``FORM 2 N``."""
    id: int
    name: str
    class_id: int


@dataclass(frozen=True)
class AdminUser:
    """User that imported payment transactions are attributed to."""
    id: int
    matricule: str


@dataclass(frozen=True)
class ImportedEnrollment:
    id: int
    sub_class_id: int | None


@dataclass(frozen=True)
class ImportedStudent:
    """Previously imported student found by matricule prefix (cleanup input)."""
    id: int
    matricule: str
    enrollments: tuple[ImportedEnrollment, ...] = ()


@dataclass(frozen=True)
class StudentImport:
    """Ids created for one imported spreadsheet row."""
    matricule: str
    student_id: int
    enrollment_id: int
    fee_id: int
    payment_id: int | None = None

    @property
    def payment_created(self) -> bool:
        return self.payment_id is not None
