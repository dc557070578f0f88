from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from ..db.store import FeeStore
from ..models.entities import ImportedStudent
from ..models.import_result import CleanupResult

"""Cleanup of previously imported students.

Students created by the importer carry a fixed matricule prefix. Removing them
means removing their enrollments for the academic year and everything hanging
off those enrollments, children before parents, without relying on the
database's cascade configuration. The order is the explicit DELETION_PLAN,
checked against the FOREIGN_KEYS edges when this module is imported.
"""

__all__ = [
    "DeletionOrderError",
    "DeletionStep",
    "ForeignKeyEdge",
    "DELETION_PLAN",
    "FOREIGN_KEYS",
    "validate_deletion_plan",
    "cleanup_imported",
]

logger = logging.getLogger(__name__)


class DeletionOrderError(Exception):
    """A deletion plan would delete a parent row before one of its children."""


@dataclass(frozen=True)
class DeletionStep:
    """Delete rows of ``table`` whose ``key_column`` is in the ids of ``scope``.

    scope: "enrollment" (ids of the student's enrollments) or "student" (the student id)
    """
    entity: str
    table: str
    key_column: str
    scope: str


@dataclass(frozen=True)
class ForeignKeyEdge:
    """``child`` rows reference ``parent`` rows through ``column``."""
    child: str
    parent: str
    column: str


DELETION_PLAN: tuple[DeletionStep, ...] = (
    DeletionStep("PaymentTransaction", "PaymentTransaction", "enrollment_id", "enrollment"),
    DeletionStep("SchoolFees", "SchoolFees", "enrollment_id", "enrollment"),
    DeletionStep("Enrollment", "Enrollment", "id", "enrollment"),
    DeletionStep("Student", "Student", "id", "student"),
)

FOREIGN_KEYS: tuple[ForeignKeyEdge, ...] = (
    ForeignKeyEdge("PaymentTransaction", "Enrollment", "enrollment_id"),
    ForeignKeyEdge("PaymentTransaction", "SchoolFees", "fee_id"),
    ForeignKeyEdge("SchoolFees", "Enrollment", "enrollment_id"),
    ForeignKeyEdge("Enrollment", "Student", "student_id"),
)

_RESULT_FIELDS = {
    "PaymentTransaction": "payment_transactions",
    "SchoolFees": "school_fees",
    "Enrollment": "enrollments",
    "Student": "students",
}


def validate_deletion_plan(plan: Sequence[DeletionStep], edges: Sequence[ForeignKeyEdge]) -> None:
    """Raise DeletionOrderError unless every child entity is deleted before its parent."""
    position = {step.entity: idx for idx, step in enumerate(plan)}
    for edge in edges:
        if edge.child not in position or edge.parent not in position:
            continue
        if position[edge.child] > position[edge.parent]:
            raise DeletionOrderError(
                f"{edge.parent} deleted before {edge.child} ({edge.child}.{edge.column})"
            )


validate_deletion_plan(DELETION_PLAN, FOREIGN_KEYS)


def _delete_student(
    store: FeeStore, student: ImportedStudent, plan: Sequence[DeletionStep], counts: dict[str, int]
) -> None:
    # enrollment 単位のステップを先に全て実行し、最後に student 単位
    for enrollment in student.enrollments:
        for step in plan:
            if step.scope == "enrollment":
                counts[step.entity] += store.delete_rows(step.table, step.key_column, [enrollment.id])
    for step in plan:
        if step.scope == "student":
            counts[step.entity] += store.delete_rows(step.table, step.key_column, [student.id])


def cleanup_imported(
    store: FeeStore,
    academic_year_id: int,
    prefix: str,
    plan: Sequence[DeletionStep] = DELETION_PLAN,
) -> CleanupResult:
    """Delete every student whose matricule starts with ``prefix`` and its year records.

    Runs in one transaction; afterwards each touched sub class gets
    ``current_students = 0``. A second call finds nothing and deletes nothing.
    """
    validate_deletion_plan(plan, FOREIGN_KEYS)
    counts = {step.entity: 0 for step in plan}

    with store.transaction():
        students = store.find_imported_students(prefix, academic_year_id)
        logger.info("Found %d imported students to clean up", len(students))
        for student in students:
            _delete_student(store, student, plan, counts)

        touched = sorted(
            {
                e.sub_class_id
                for s in students
                for e in s.enrollments
                if e.sub_class_id is not None
            }
        )
        for sub_class_id in touched:
            store.set_sub_class_student_count(sub_class_id, 0)

    result = CleanupResult(
        reset_sub_classes=tuple(touched),
        **{_RESULT_FIELDS[entity]: n for entity, n in counts.items() if entity in _RESULT_FIELDS},
    )
    logger.info("Cleaned up %d students and related data", result.students)
    return result
