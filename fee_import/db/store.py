from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import UTC, date, datetime
from typing import Any, Protocol

import psycopg2

from fee_import.models.config_models import StudentDefaults
from fee_import.models.entities import (
    AcademicYear,
    AdminUser,
    ImportedEnrollment,
    ImportedStudent,
    SubClass,
)

"""SQL access to the school database.

All statements the importer issues live here. Tables follow the school
backend's ORM naming (quoted PascalCase tables, snake_case columns). Values are
always passed as parameters; identifiers are quoted.
"""

__all__ = [
    "StoreError",
    "FeeStore",
    "PostgresFeeStore",
    "quote_ident",
]

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A database statement failed."""


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _like_prefix(prefix: str) -> str:
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return escaped + "%"


class FeeStore(Protocol):
    """Operations the orchestrator and cleanup routine need from the database."""

    def transaction(self) -> Any: ...
    def find_current_academic_year(self) -> AcademicYear | None: ...
    def find_sub_class_by_name(self, name: str) -> SubClass | None: ...
    def find_user_by_matricule(self, matricule: str) -> AdminUser | None: ...
    def prepare_matricule_sequence(self, sequence: str) -> None: ...
    def next_matricule_number(self, sequence: str) -> int: ...
    def create_student(
        self, matricule: str, name: str, academic_year_id: int, defaults: StudentDefaults
    ) -> int: ...
    def create_enrollment(self, student_id: int, academic_year_id: int, sub_class: SubClass) -> int: ...
    def create_school_fees(
        self, enrollment_id: int, academic_year_id: int, amount_expected: float,
        amount_paid: float, due_date: date,
    ) -> int: ...
    def create_payment_transaction(
        self, enrollment_id: int, academic_year_id: int, fee_id: int, amount: float,
        payment_method: str, recorded_by_id: int, notes: str,
    ) -> int: ...
    def set_sub_class_student_count(self, sub_class_id: int, count: int) -> None: ...
    def find_imported_students(self, prefix: str, academic_year_id: int) -> list[ImportedStudent]: ...
    def delete_rows(self, table: str, key_column: str, ids: Sequence[int]) -> int: ...


class PostgresFeeStore:
    """FeeStore over a psycopg2 cursor (connection in autocommit mode)."""

    def __init__(self, cursor: Any, timestamp_columns: Sequence[str] = ("created_at", "updated_at")) -> None:
        self.cursor = cursor
        self.timestamp_columns = tuple(timestamp_columns)

    # -- plumbing -----------------------------------------------------------------

    def _execute(self, sql: str, params: Sequence[Any] | None = None) -> None:
        try:
            self.cursor.execute(sql, params)
        except psycopg2.Error as e:
            raise StoreError(str(e).strip()) from e

    def _fetchone(self, sql: str, params: Sequence[Any] | None = None) -> tuple[Any, ...] | None:
        self._execute(sql, params)
        return self.cursor.fetchone()

    def _insert_returning_id(self, table: str, values: dict[str, Any]) -> int:
        columns = [quote_ident(c) for c in values]
        placeholders = ["%s"] * len(values)
        for ts_col in self.timestamp_columns:
            if ts_col not in values:
                columns.append(quote_ident(ts_col))
                placeholders.append("NOW()")
        sql = (
            f"INSERT INTO {quote_ident(table)} ({', '.join(columns)}) "
            f"VALUES ({', '.join(placeholders)}) RETURNING id"
        )
        row = self._fetchone(sql, list(values.values()))
        if row is None:  # pragma: no cover - RETURNING always yields a row
            raise StoreError(f"insert into {table} returned no id")
        return int(row[0])

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """BEGIN ... COMMIT, ROLLBACK on any exception (re-raised)."""
        self._execute("BEGIN")
        try:
            yield
        except BaseException:
            try:
                self.cursor.execute("ROLLBACK")
            except Exception:
                logger.debug("rollback failed", exc_info=True)
            raise
        self._execute("COMMIT")

    # -- lookups ------------------------------------------------------------------

    def find_current_academic_year(self) -> AcademicYear | None:
        row = self._fetchone(
            'SELECT id, name FROM "AcademicYear" WHERE is_current = TRUE ORDER BY id LIMIT 1'
        )
        return AcademicYear(id=row[0], name=row[1]) if row else None

    def find_sub_class_by_name(self, name: str) -> SubClass | None:
        row = self._fetchone(
            'SELECT id, name, class_id FROM "SubClass" WHERE name = %s ORDER BY id LIMIT 1',
            (name,),
        )
        return SubClass(id=row[0], name=row[1], class_id=row[2]) if row else None

    def find_user_by_matricule(self, matricule: str) -> AdminUser | None:
        row = self._fetchone(
            'SELECT id, matricule FROM "User" WHERE matricule = %s ORDER BY id LIMIT 1',
            (matricule,),
        )
        return AdminUser(id=row[0], matricule=row[1]) if row else None

    # -- matricule sequence -------------------------------------------------------

    def prepare_matricule_sequence(self, sequence: str) -> None:
        """Create the sequence if needed and move it to at least the current student count.

        The sequence never moves backwards, so numbers handed out earlier are
        never reissued.
        """
        seq = quote_ident(sequence)
        self._execute(f"CREATE SEQUENCE IF NOT EXISTS {seq} START WITH 1 MINVALUE 1")
        row = self._fetchone(f"SELECT last_value, is_called FROM {seq}")
        last_value, is_called = (row[0], row[1]) if row else (1, False)
        consumed = last_value if is_called else last_value - 1
        count_row = self._fetchone('SELECT COUNT(*) FROM "Student"')
        student_count = int(count_row[0]) if count_row else 0
        if student_count > consumed:
            self._execute("SELECT setval(%s, %s, TRUE)", (seq, student_count))
            logger.debug("sequence=%s advanced to %d", sequence, student_count)

    def next_matricule_number(self, sequence: str) -> int:
        row = self._fetchone("SELECT nextval(%s)", (quote_ident(sequence),))
        if row is None:  # pragma: no cover
            raise StoreError(f"nextval({sequence}) returned nothing")
        return int(row[0])

    # -- creation -----------------------------------------------------------------

    def create_student(
        self, matricule: str, name: str, academic_year_id: int, defaults: StudentDefaults
    ) -> int:
        return self._insert_returning_id(
            "Student",
            {
                "matricule": matricule,
                "name": name,
                "date_of_birth": defaults.date_of_birth,
                "place_of_birth": defaults.place_of_birth,
                "gender": defaults.gender,
                "residence": defaults.residence,
                "former_school": None,
                "is_new_student": True,
                "status": defaults.status,
                "first_enrollment_year_id": academic_year_id,
            },
        )

    def create_enrollment(self, student_id: int, academic_year_id: int, sub_class: SubClass) -> int:
        return self._insert_returning_id(
            "Enrollment",
            {
                "student_id": student_id,
                "academic_year_id": academic_year_id,
                "class_id": sub_class.class_id,
                "sub_class_id": sub_class.id,
                "repeater": False,
                "enrollment_date": datetime.now(UTC),
            },
        )

    def create_school_fees(
        self,
        enrollment_id: int,
        academic_year_id: int,
        amount_expected: float,
        amount_paid: float,
        due_date: date,
    ) -> int:
        return self._insert_returning_id(
            "SchoolFees",
            {
                "amount_expected": amount_expected,
                "amount_paid": amount_paid,
                "academic_year_id": academic_year_id,
                "due_date": due_date,
                "enrollment_id": enrollment_id,
                "is_new_student": True,
            },
        )

    def create_payment_transaction(
        self,
        enrollment_id: int,
        academic_year_id: int,
        fee_id: int,
        amount: float,
        payment_method: str,
        recorded_by_id: int,
        notes: str,
    ) -> int:
        return self._insert_returning_id(
            "PaymentTransaction",
            {
                "enrollment_id": enrollment_id,
                "academic_year_id": academic_year_id,
                "amount": amount,
                "payment_date": datetime.now(UTC),
                "payment_method": payment_method,
                "recorded_by_id": recorded_by_id,
                "notes": notes,
                "fee_id": fee_id,
            },
        )

    def set_sub_class_student_count(self, sub_class_id: int, count: int) -> None:
        assignments = ["current_students = %s"]
        if "updated_at" in self.timestamp_columns:
            assignments.append('"updated_at" = NOW()')
        self._execute(
            f'UPDATE "SubClass" SET {", ".join(assignments)} WHERE id = %s',
            (count, sub_class_id),
        )

    # -- cleanup ------------------------------------------------------------------

    def find_imported_students(self, prefix: str, academic_year_id: int) -> list[ImportedStudent]:
        """Students whose matricule starts with ``prefix`` plus their enrollments in the year."""
        self._execute(
            'SELECT s.id, s.matricule, e.id, e.sub_class_id '
            'FROM "Student" s '
            'LEFT JOIN "Enrollment" e ON e.student_id = s.id AND e.academic_year_id = %s '
            "WHERE s.matricule LIKE %s ESCAPE '\\' "
            "ORDER BY s.id, e.id",
            (academic_year_id, _like_prefix(prefix)),
        )
        grouped: dict[int, tuple[str, list[ImportedEnrollment]]] = {}
        for student_id, matricule, enrollment_id, sub_class_id in self.cursor.fetchall():
            entry = grouped.setdefault(student_id, (matricule, []))
            if enrollment_id is not None:
                entry[1].append(ImportedEnrollment(id=enrollment_id, sub_class_id=sub_class_id))
        return [
            ImportedStudent(id=sid, matricule=mat, enrollments=tuple(enrs))
            for sid, (mat, enrs) in grouped.items()
        ]

    def delete_rows(self, table: str, key_column: str, ids: Sequence[int]) -> int:
        if not ids:
            return 0
        self._execute(
            f"DELETE FROM {quote_ident(table)} WHERE {quote_ident(key_column)} = ANY(%s)",
            (list(ids),),
        )
        return max(int(self.cursor.rowcount), 0)
