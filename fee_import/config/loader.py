from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from fee_import.config.class_mapping import resolve_class_mapping
from fee_import.models.config_models import (
    ColumnAliases,
    DatabaseConfig,
    HeaderMarkers,
    ImportConfig,
    StudentDefaults,
)

"""Config loader.

Responsibilities:
- Load YAML ``config/import.yml``
- Validate against the bundled JSON schema (unknown keys rejected)
- Apply defaults for everything the file leaves out
"""

SCHEMA_PATH = Path(__file__).with_name("import_config.schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")


class ConfigError(Exception):
    pass


def _stringify_dates(value: Any) -> Any:
    # YAML の日付リテラルは date 型になるため schema 検証前に文字列へ戻す
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _stringify_dates(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_stringify_dates(v) for v in value]
    return value


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing/invalid or the data fails validation
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed at {e.json_path}: {e.message}") from e


def _parse_date(raw: str, key: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError as e:
        raise ConfigError(f"invalid date for {key}: {raw!r}") from e


def build_config(data: dict[str, Any]) -> ImportConfig:
    """Build an ImportConfig from an already validated mapping."""
    alias_defaults = ColumnAliases()
    aliases_raw = data.get("column_aliases", {})
    markers_raw = data.get("header_markers", {})
    markers = HeaderMarkers(
        equals=tuple(markers_raw.get("equals", HeaderMarkers().equals)),
        contains=tuple(markers_raw.get("contains", HeaderMarkers().contains)),
    )
    aliases = ColumnAliases(
        sn=tuple(aliases_raw.get("sn", alias_defaults.sn)),
        name=tuple(aliases_raw.get("name", alias_defaults.name)),
        status=tuple(aliases_raw.get("status", alias_defaults.status)),
        total_expected=tuple(aliases_raw.get("total_expected", alias_defaults.total_expected)),
        total_paid=tuple(aliases_raw.get("total_paid", alias_defaults.total_paid)),
        debt=tuple(aliases_raw.get("debt", alias_defaults.debt)),
        parent_contact=tuple(aliases_raw.get("parent_contact", alias_defaults.parent_contact)),
        header_markers=markers,
        header_scan_rows=data.get("header_scan_rows", alias_defaults.header_scan_rows),
        default_total_expected=float(
            data.get("default_total_expected", alias_defaults.default_total_expected)
        ),
        phone_placeholder=data.get("phone_placeholder", alias_defaults.phone_placeholder),
    )

    sd_defaults = StudentDefaults()
    sd_raw = data.get("student_defaults", {})
    student_defaults = StudentDefaults(
        date_of_birth=(
            _parse_date(sd_raw["date_of_birth"], "student_defaults.date_of_birth")
            if "date_of_birth" in sd_raw
            else sd_defaults.date_of_birth
        ),
        place_of_birth=sd_raw.get("place_of_birth", sd_defaults.place_of_birth),
        gender=sd_raw.get("gender", sd_defaults.gender),
        residence=sd_raw.get("residence", sd_defaults.residence),
        status=sd_raw.get("status", sd_defaults.status),
    )

    db_raw = data.get("database", {})
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )

    base = ImportConfig(class_mapping={})
    return ImportConfig(
        class_mapping=resolve_class_mapping(data.get("class_mapping")),
        column_aliases=aliases,
        matricule_prefix=data.get("matricule_prefix", base.matricule_prefix),
        matricule_sequence=data.get("matricule_sequence", base.matricule_sequence),
        admin_matricule=data.get("admin_matricule", base.admin_matricule),
        payment_method=data.get("payment_method", base.payment_method),
        fee_due_date=(
            _parse_date(data["fee_due_date"], "fee_due_date")
            if "fee_due_date" in data
            else base.fee_due_date
        ),
        student_defaults=student_defaults,
        timestamp_columns=tuple(data.get("timestamp_columns", base.timestamp_columns)),
        database=db,
    )


def default_config() -> ImportConfig:
    return build_config({})


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")

    data = _stringify_dates(data)
    _validate_config_schema(data)
    return build_config(data)


def load_config_or_default(path: Path | None) -> ImportConfig:
    """Load ``path`` when given; otherwise the default location if present, else built-in defaults.

    An explicitly given path that does not exist is an error.
    """
    if path is not None:
        return load_config(path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return default_config()
