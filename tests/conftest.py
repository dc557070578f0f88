# Shared pytest fixtures
from __future__ import annotations

import copy
import tempfile
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from fee_import.db.store import StoreError
from fee_import.excel.reader import build_sheet
from fee_import.logging.init import reset_logging
from fee_import.models.config_models import StudentDefaults
from fee_import.models.entities import (
    AcademicYear,
    AdminUser,
    ImportedEnrollment,
    ImportedStudent,
    SubClass,
)
from fee_import.models.workbook import SheetData

# child table, column, parent table
FAKE_FOREIGN_KEYS = [
    ("PaymentTransaction", "enrollment_id", "Enrollment"),
    ("PaymentTransaction", "fee_id", "SchoolFees"),
    ("SchoolFees", "enrollment_id", "Enrollment"),
    ("Enrollment", "student_id", "Student"),
]


class FakeFeeStore:
    """In-memory FeeStore.

    - transaction() snapshots the tables and restores them on exception
    - the matricule sequence is not rolled back (same as a PostgreSQL sequence)
    - delete_rows refuses to delete a parent row that still has children
    - ``fail_student_names`` makes create_school_fees raise for those students
    """

    def __init__(
        self,
        *,
        academic_year: AcademicYear | None = AcademicYear(id=1, name="2025-2026"),
        sub_classes: Sequence[str] = ("FORM 1 N", "FORM 2 N", "FORM 2 S"),
        admin: AdminUser | None = AdminUser(id=99, matricule="SS24CEO0001"),
    ) -> None:
        self.academic_year = academic_year
        self.sub_classes = {
            name: SubClass(id=idx, name=name, class_id=100 + idx)
            for idx, name in enumerate(sub_classes, start=1)
        }
        self.admin = admin
        self.tables: dict[str, dict[int, dict[str, Any]]] = {
            "Student": {},
            "Enrollment": {},
            "SchoolFees": {},
            "PaymentTransaction": {},
        }
        self.sub_class_counts: dict[int, int] = {}
        self.sequence_value = 0
        self.prepared_sequences: list[str] = []
        self.fail_student_names: set[str] = set()
        self.commits = 0
        self.rollbacks = 0
        self.deleted: list[tuple[str, int]] = []
        self._next_id = 1

    # -- helpers for tests ---------------------------------------------------

    def rows(self, table: str) -> list[dict[str, Any]]:
        return list(self.tables[table].values())

    def student_by_name(self, name: str) -> dict[str, Any] | None:
        return next((r for r in self.rows("Student") if r["name"] == name), None)

    def _insert(self, table: str, values: dict[str, Any]) -> int:
        rid = self._next_id
        self._next_id += 1
        self.tables[table][rid] = {"id": rid, **values}
        return rid

    # -- FeeStore ------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        snapshot = copy.deepcopy(self.tables)
        counts = dict(self.sub_class_counts)
        try:
            yield
        except BaseException:
            self.tables = snapshot
            self.sub_class_counts = counts
            self.rollbacks += 1
            raise
        self.commits += 1

    def find_current_academic_year(self) -> AcademicYear | None:
        return self.academic_year

    def find_sub_class_by_name(self, name: str) -> SubClass | None:
        return self.sub_classes.get(name)

    def find_user_by_matricule(self, matricule: str) -> AdminUser | None:
        if self.admin is not None and self.admin.matricule == matricule:
            return self.admin
        return None

    def prepare_matricule_sequence(self, sequence: str) -> None:
        self.prepared_sequences.append(sequence)
        self.sequence_value = max(self.sequence_value, len(self.tables["Student"]))

    def next_matricule_number(self, sequence: str) -> int:
        self.sequence_value += 1
        return self.sequence_value

    def create_student(
        self, matricule: str, name: str, academic_year_id: int, defaults: StudentDefaults
    ) -> int:
        if any(r["matricule"] == matricule for r in self.rows("Student")):
            raise StoreError(f"duplicate matricule {matricule}")
        return self._insert(
            "Student",
            {
                "matricule": matricule,
                "name": name,
                "date_of_birth": defaults.date_of_birth,
                "gender": defaults.gender,
                "status": defaults.status,
                "first_enrollment_year_id": academic_year_id,
            },
        )

    def create_enrollment(self, student_id: int, academic_year_id: int, sub_class: SubClass) -> int:
        assert student_id in self.tables["Student"]
        return self._insert(
            "Enrollment",
            {
                "student_id": student_id,
                "academic_year_id": academic_year_id,
                "class_id": sub_class.class_id,
                "sub_class_id": sub_class.id,
            },
        )

    def create_school_fees(
        self, enrollment_id: int, academic_year_id: int, amount_expected: float,
        amount_paid: float, due_date: date,
    ) -> int:
        enrollment = self.tables["Enrollment"][enrollment_id]
        student = self.tables["Student"][enrollment["student_id"]]
        if student["name"] in self.fail_student_names:
            raise StoreError(f"simulated failure for {student['name']}")
        return self._insert(
            "SchoolFees",
            {
                "enrollment_id": enrollment_id,
                "academic_year_id": academic_year_id,
                "amount_expected": amount_expected,
                "amount_paid": amount_paid,
                "due_date": due_date,
            },
        )

    def create_payment_transaction(
        self, enrollment_id: int, academic_year_id: int, fee_id: int, amount: float,
        payment_method: str, recorded_by_id: int, notes: str,
    ) -> int:
        assert fee_id in self.tables["SchoolFees"]
        return self._insert(
            "PaymentTransaction",
            {
                "enrollment_id": enrollment_id,
                "academic_year_id": academic_year_id,
                "fee_id": fee_id,
                "amount": amount,
                "payment_method": payment_method,
                "recorded_by_id": recorded_by_id,
                "notes": notes,
            },
        )

    def set_sub_class_student_count(self, sub_class_id: int, count: int) -> None:
        self.sub_class_counts[sub_class_id] = count

    def find_imported_students(self, prefix: str, academic_year_id: int) -> list[ImportedStudent]:
        result = []
        for sid, student in self.tables["Student"].items():
            if not student["matricule"].startswith(prefix):
                continue
            enrollments = tuple(
                ImportedEnrollment(id=eid, sub_class_id=e["sub_class_id"])
                for eid, e in self.tables["Enrollment"].items()
                if e["student_id"] == sid and e["academic_year_id"] == academic_year_id
            )
            result.append(ImportedStudent(id=sid, matricule=student["matricule"], enrollments=enrollments))
        return result

    def delete_rows(self, table: str, key_column: str, ids: Sequence[int]) -> int:
        wanted = set(ids)
        doomed = [
            rid for rid, row in self.tables[table].items()
            if (rid if key_column == "id" else row[key_column]) in wanted
        ]
        for child, column, parent in FAKE_FOREIGN_KEYS:
            if parent != table:
                continue
            if any(row[column] in doomed for row in self.tables[child].values()):
                raise StoreError(f"foreign key violation: {child}.{column} references {table}")
        for rid in doomed:
            del self.tables[table][rid]
        self.deleted.append((table, len(doomed)))
        return len(doomed)


@pytest.fixture(autouse=True)
def _clean_logging() -> Iterator[None]:
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """class_mapping:
  1N: FORM 1 N
  2N: FORM 2 N
  2S: FORM 2 S
matricule_prefix: SS25ST
admin_matricule: SS24CEO0001
payment_method: CCA
fee_due_date: 2026-06-30
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: schooldb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def fake_store() -> FakeFeeStore:
    return FakeFeeStore()


@pytest.fixture()
def make_store() -> Callable[..., FakeFeeStore]:
    return FakeFeeStore


@pytest.fixture()
def make_sheet() -> Callable[[str, list[list[Any]]], SheetData]:
    """Build SheetData from in-memory rows (same path as the reader, without a file)."""
    def _make(name: str, rows: list[list[Any]]) -> SheetData:
        return build_sheet(name, pd.DataFrame(rows, dtype=object))
    return _make


@pytest.fixture()
def make_excel() -> Callable[[Path, dict[str, list[list[Any]]]], Path]:
    """Write a real .xlsx with one sheet per entry (no header/index row added)."""
    def _make(path: Path, sheets: dict[str, list[list[Any]]]) -> Path:
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for sheet_name, rows in sheets.items():
                pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
        return path
    return _make


@pytest.fixture()
def jane_doe_rows() -> list[list[Any]]:
    """Class sheet with a two-row title block; header at raw index 2."""
    return [
        ["GOVERNMENT BILINGUAL HIGH SCHOOL"],
        ["FEE RECORD 2025/2026"],
        ["SN", "NAME", "TOTAL EXPECTED", "TOTAL PAID", "STATUS"],
        [1, "Jane Doe", 100000, 50000, 690000111],
    ]
