from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

"""Config dataclasses for the fee workbook importer.

The loader in fee_import.config.loader turns the validated YAML document into
these frozen objects; everything downstream only sees these types.
"""


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class HeaderMarkers:
    """Cell tests that identify the header row of a class sheet.

    A row is the header when any string cell equals (case-insensitive) one of
    ``equals`` or contains one of ``contains``.
    """
    equals: tuple[str, ...] = ("SN",)
    contains: tuple[str, ...] = ("NAME",)


@dataclass(frozen=True)
class ColumnAliases:
    """Ordered candidate header names per logical student field.

    The first alias with a non-empty cell wins. Header names are compared
    after strip + upper.
    """
    sn: tuple[str, ...] = ("SN",)
    name: tuple[str, ...] = ("NAME", "STUDENT NAME")
    status: tuple[str, ...] = ("STATUS",)
    total_expected: tuple[str, ...] = ("TOTAL EXPECTED",)
    total_paid: tuple[str, ...] = ("TOTAL PAID",)
    debt: tuple[str, ...] = ("DEBTH 1ST INST", "DEBT")
    parent_contact: tuple[str, ...] = ("PARENT CONTACT", "STATUS")
    header_markers: HeaderMarkers = field(default_factory=HeaderMarkers)
    header_scan_rows: int = 5
    default_total_expected: float = 175000.0
    phone_placeholder: str = "000000000"


@dataclass(frozen=True)
class StudentDefaults:
    """Placeholder demographics for students created from a fee sheet."""
    date_of_birth: date = date(2010, 1, 1)
    place_of_birth: str = "Unknown"
    gender: str = "Male"
    residence: str = "Unknown"
    status: str = "ENROLLED"


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for one import run."""
    class_mapping: dict[str, str]  # sheet token -> sub class name (ordered)
    column_aliases: ColumnAliases = field(default_factory=ColumnAliases)
    matricule_prefix: str = "SS25ST"
    matricule_sequence: str = "import_matricule_seq"
    admin_matricule: str = "SS24CEO0001"
    payment_method: str = "CCA"
    fee_due_date: date = date(2026, 6, 30)
    student_defaults: StudentDefaults = field(default_factory=StudentDefaults)
    timestamp_columns: tuple[str, ...] = ("created_at", "updated_at")
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
