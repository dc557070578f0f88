from __future__ import annotations

import logging
import math
import re
import warnings
from collections.abc import Sequence
from typing import Any

from fee_import.models.config_models import ColumnAliases
from fee_import.models.student_record import ParsedSheet, ParsedStudentRecord

"""Row parser for class fee sheets.

Fee sheets do not share a fixed layout: a title block of varying height sits
above the header row. The header row is located by scanning the first few rows
for marker cells, and each logical field is read through an ordered list of
header aliases (ColumnAliases), so layout tolerance is configuration rather
than code.
"""

__all__ = [
    "HeaderNotFoundWarning",
    "DEFAULT_ALIASES",
    "find_header_row",
    "parse_amount",
    "extract_phone",
    "parse_student_rows",
]

logger = logging.getLogger(__name__)

DEFAULT_ALIASES = ColumnAliases()

PHONE_PATTERN = re.compile(r"(\d{9,})")
AMOUNT_PREFIX = re.compile(r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?")


class HeaderNotFoundWarning(UserWarning):
    """No header row within the scanned rows; the sheet yields no records."""


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _is_header_cell(cell: Any, aliases: ColumnAliases) -> bool:
    if not isinstance(cell, str):
        return False
    text = cell.strip().upper()
    markers = aliases.header_markers
    if any(text == m.upper() for m in markers.equals):
        return True
    return any(m.upper() in text for m in markers.contains)


def find_header_row(raw_rows: Sequence[Sequence[Any]], aliases: ColumnAliases = DEFAULT_ALIASES) -> int | None:
    """Return the 0-based index of the header row within the first ``header_scan_rows`` rows."""
    for idx, row in enumerate(raw_rows[: aliases.header_scan_rows]):
        if row and any(_is_header_cell(cell, aliases) for cell in row):
            return idx
    return None


def parse_amount(value: Any, default: float) -> float:
    """Numeric parse tolerant of thousands separators and trailing text; missing/unparseable -> default.

    >>> parse_amount("50,000 FCFA", 0.0)
    50000.0
    >>> parse_amount("FCFA 50000", 0.0)
    0.0
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", "").replace(" ", "")
        if not text:
            return default
        # 先頭の数値部分だけを読む ("50000F" -> 50000)
        match = AMOUNT_PREFIX.match(text)
        if match is None:
            return default
        number = float(match.group(0))
    else:
        return default
    if not math.isfinite(number):
        return default
    return number


def _parse_int(value: Any) -> int | None:
    number = parse_amount(value, math.nan)
    if math.isnan(number):
        return None
    return int(number)


def extract_phone(contact: str | None, placeholder: str = DEFAULT_ALIASES.phone_placeholder) -> str:
    """First run of 9+ digits in ``contact``; ``placeholder`` when there is none.

    >>> extract_phone("Father - 677123456")
    '677123456'
    >>> extract_phone("no phone")
    '000000000'
    """
    if not contact:
        return placeholder
    match = PHONE_PATTERN.search(contact)
    return match.group(1) if match else placeholder


def _first_present(row_map: dict[str, Any], candidates: Sequence[str]) -> Any:
    for header in candidates:
        value = row_map.get(header.strip().upper())
        if not _is_blank(value):
            return value
    return None


def _first_nonzero_amount(row_map: dict[str, Any], candidates: Sequence[str]) -> float:
    # 0 は未記入扱いで次の別名へ進む (DEBTH 1ST INST = 0 でも DEBT を読む)
    for header in candidates:
        amount = parse_amount(row_map.get(header.strip().upper()), 0.0)
        if amount != 0:
            return amount
    return 0.0


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        # 電話番号セルが数値として読まれた場合の 690000111.0 対策
        return str(int(value))
    return str(value).strip()


def _build_record(row_number: int, row_map: dict[str, Any], aliases: ColumnAliases) -> ParsedStudentRecord | None:
    raw_name = _first_present(row_map, aliases.name)
    # 数値セル (合計行など) は氏名とみなさない
    if not isinstance(raw_name, str) or not raw_name.strip():
        return None
    name = raw_name.strip()
    parent_contact = _as_text(_first_present(row_map, aliases.parent_contact))
    return ParsedStudentRecord(
        row_number=row_number,
        name=name,
        sn=_parse_int(_first_present(row_map, aliases.sn)),
        status=_as_text(_first_present(row_map, aliases.status)),
        total_expected=parse_amount(
            _first_present(row_map, aliases.total_expected), aliases.default_total_expected
        ),
        total_paid=parse_amount(_first_present(row_map, aliases.total_paid), 0.0),
        debt=_first_nonzero_amount(row_map, aliases.debt),
        parent_contact=parent_contact,
        parent_phone=extract_phone(parent_contact, aliases.phone_placeholder),
    )


def parse_student_rows(
    raw_rows: Sequence[Sequence[Any]],
    aliases: ColumnAliases = DEFAULT_ALIASES,
    sheet_name: str = "",
) -> ParsedSheet:
    """Parse a sheet's raw cell matrix into student records.

    Rows before and including the header row are ignored. Rows whose name
    resolves blank are dropped (counted in ``discarded_rows`` when the row had
    any content). Emits HeaderNotFoundWarning when no header row is found.
    """
    header_idx = find_header_row(raw_rows, aliases)
    if header_idx is None:
        warnings.warn(
            f"sheet '{sheet_name}': no header row within first {aliases.header_scan_rows} rows",
            HeaderNotFoundWarning,
            stacklevel=2,
        )
        return ParsedSheet(sheet_name=sheet_name, header_row_index=None)

    headers = ["" if _is_blank(c) else str(c).strip().upper() for c in raw_rows[header_idx]]
    logger.debug("sheet=%s header_row=%d headers=%s", sheet_name, header_idx + 1, headers)

    records: list[ParsedStudentRecord] = []
    discarded = 0
    for idx in range(header_idx + 1, len(raw_rows)):
        row = raw_rows[idx]
        if not row or all(_is_blank(c) for c in row):
            continue
        row_map = {headers[j]: row[j] for j in range(min(len(headers), len(row))) if headers[j]}
        record = _build_record(idx + 1, row_map, aliases)
        if record is None:
            discarded += 1
            continue
        records.append(record)

    logger.debug("sheet=%s parsed=%d discarded=%d", sheet_name, len(records), discarded)
    return ParsedSheet(
        sheet_name=sheet_name,
        header_row_index=header_idx,
        headers=headers,
        records=records,
        discarded_rows=discarded,
    )
