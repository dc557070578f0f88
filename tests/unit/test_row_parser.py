from __future__ import annotations

import pytest

from fee_import.excel.row_parser import (
    HeaderNotFoundWarning,
    extract_phone,
    find_header_row,
    parse_amount,
    parse_student_rows,
)
from fee_import.models.config_models import ColumnAliases, HeaderMarkers


def test_header_found_at_index_two_and_data_starts_after(jane_doe_rows):
    assert find_header_row(jane_doe_rows) == 2

    parsed = parse_student_rows(jane_doe_rows, sheet_name="2N")

    assert parsed.header_found
    assert parsed.header_row_index == 2
    assert len(parsed.records) == 1
    rec = parsed.records[0]
    assert rec.row_number == 4  # 1-based spreadsheet row
    assert rec.name == "Jane Doe"
    assert rec.sn == 1
    assert rec.total_expected == 100000
    assert rec.total_paid == 50000
    # PARENT CONTACT が無いので STATUS 列から電話番号
    assert rec.parent_contact == "690000111"
    assert rec.parent_phone == "690000111"


def test_header_detected_by_name_substring():
    rows = [["Title"], ["N°", "STUDENT NAME", "TOTAL PAID"], [1, "Ali", 10]]
    assert find_header_row(rows) == 1
    parsed = parse_student_rows(rows)
    assert parsed.records[0].name == "Ali"


def test_header_marker_is_case_insensitive():
    rows = [["sn", "name"], [1, "Ali"]]
    assert find_header_row(rows) == 0


def test_header_beyond_scan_window_is_not_found():
    rows = [["t"]] * 5 + [["SN", "NAME"], [1, "Late"]]
    with pytest.warns(HeaderNotFoundWarning):
        parsed = parse_student_rows(rows, sheet_name="1N")
    assert not parsed.header_found
    assert parsed.records == []


def test_no_header_warns_and_yields_nothing():
    rows = [["random"], [1, 2, 3]]
    with pytest.warns(HeaderNotFoundWarning, match="1N"):
        parsed = parse_student_rows(rows, sheet_name="1N")
    assert parsed.header_row_index is None
    assert parsed.records == []


def test_missing_total_expected_defaults_to_175000():
    rows = [["SN", "NAME", "TOTAL PAID"], [1, "Bob", 20000]]
    rec = parse_student_rows(rows).records[0]
    assert rec.total_expected == 175000
    assert rec.total_paid == 20000
    assert rec.debt == 0


def test_blank_total_expected_cell_defaults_to_175000():
    rows = [["SN", "NAME", "TOTAL EXPECTED"], [1, "Bob", None], [2, "Eve", "  "]]
    recs = parse_student_rows(rows).records
    assert [r.total_expected for r in recs] == [175000, 175000]


def test_blank_names_are_discarded_and_counted():
    rows = [
        ["SN", "NAME", "TOTAL PAID"],
        [1, "Alice", 100],
        [2, None, 500],
        [],
        [None, "   ", None],
        ["TOTAL", None, 600],
        [3, "Carol", None],
    ]
    parsed = parse_student_rows(rows)
    assert [r.name for r in parsed.records] == ["Alice", "Carol"]
    assert parsed.discarded_rows == 2


def test_name_alias_fallback_and_debt_alias():
    rows = [["SN", "STUDENT NAME", "DEBT"], [1, "Dan", "12,500"]]
    rec = parse_student_rows(rows).records[0]
    assert rec.name == "Dan"
    assert rec.debt == 12500


def test_parent_contact_preferred_over_status():
    rows = [
        ["SN", "NAME", "STATUS", "PARENT CONTACT"],
        [1, "Ama", "NEW", "Mother 677001122"],
    ]
    rec = parse_student_rows(rows).records[0]
    assert rec.status == "NEW"
    assert rec.parent_phone == "677001122"


def test_numeric_phone_cell_read_as_float():
    rows = [["SN", "NAME", "PARENT CONTACT"], [1, "Ama", 690000111.0]]
    rec = parse_student_rows(rows).records[0]
    assert rec.parent_contact == "690000111"
    assert rec.parent_phone == "690000111"


def test_custom_aliases_from_config():
    aliases = ColumnAliases(
        name=("PUPIL",),
        total_paid=("AMOUNT PAID",),
        header_markers=HeaderMarkers(equals=("NO",), contains=()),
        default_total_expected=150000.0,
    )
    rows = [["NO", "PUPIL", "AMOUNT PAID"], [1, "Zoe", 30000]]
    rec = parse_student_rows(rows, aliases).records[0]
    assert rec.name == "Zoe"
    assert rec.total_paid == 30000
    assert rec.total_expected == 150000


@pytest.mark.parametrize(
    "contact,expected",
    [
        ("Father - 677123456", "677123456"),
        ("Mom: 6771234567 / 699999999", "6771234567"),
        ("no phone", "000000000"),
        ("", "000000000"),
        (None, "000000000"),
        ("12345678", "000000000"),  # 8 digits is not a phone number
    ],
)
def test_extract_phone(contact, expected):
    assert extract_phone(contact) == expected


def test_extract_phone_custom_placeholder():
    assert extract_phone("none", placeholder="N/A") == "N/A"


@pytest.mark.parametrize(
    "value,expected",
    [
        (100000, 100000.0),
        (1.5, 1.5),
        ("175,000", 175000.0),
        (" 25 000 ", 25000.0),
        ("abc", -1.0),
        ("", -1.0),
        (None, -1.0),
        (True, -1.0),
        (float("nan"), -1.0),
        (0, 0.0),
        ("50000 FCFA", 50000.0),
        ("50,000 FCFA", 50000.0),
        ("50000F", 50000.0),
        ("12.5kg", 12.5),
        ("FCFA 50000", -1.0),
        ("nan", -1.0),
    ],
)
def test_parse_amount(value, expected):
    assert parse_amount(value, -1.0) == expected


def test_amounts_with_currency_suffix_are_kept():
    rows = [
        ["SN", "NAME", "TOTAL EXPECTED", "TOTAL PAID", "DEBT"],
        [1, "Ama", "150,000 FCFA", "50000F", "100 000 FCFA"],
    ]
    rec = parse_student_rows(rows).records[0]
    assert rec.total_expected == 150000
    assert rec.total_paid == 50000
    assert rec.debt == 100000


def test_non_text_name_cell_is_discarded():
    rows = [
        ["SN", "NAME", "TOTAL PAID"],
        [1, "Alice", 100],
        [None, 350000, 600],
        [2, 12345.0, None],
    ]
    parsed = parse_student_rows(rows)
    assert [r.name for r in parsed.records] == ["Alice"]
    assert parsed.discarded_rows == 2


@pytest.mark.parametrize(
    "first_inst,debt,expected",
    [
        (0, 87500, 87500.0),  # 0 は未記入扱い
        (None, 87500, 87500.0),
        (25000, 87500, 25000.0),
        (0, None, 0.0),
        ("", "12,500", 12500.0),
    ],
)
def test_debt_falls_through_zero_alias(first_inst, debt, expected):
    rows = [["SN", "NAME", "DEBTH 1ST INST", "DEBT"], [1, "Ama", first_inst, debt]]
    assert parse_student_rows(rows).records[0].debt == expected
