from __future__ import annotations

from collections.abc import Mapping

"""Sheet token -> class-section name mapping.

Fee workbooks name each sheet with a short token (``1N``, ``USS2`` ...). The
school database stores the full sub class name. Matching is verbatim and
case-sensitive; the mapping order is the processing order.
"""

__all__ = [
    "DEFAULT_CLASS_MAPPING",
    "resolve_class_mapping",
]

DEFAULT_CLASS_MAPPING: dict[str, str] = {
    # Form 1
    "1N": "FORM 1 N",
    "1M": "FORM 1 M",
    "1S": "FORM 1 S",
    "1MN": "FORM 1 MN",
    "1MS": "FORM 1 MS",
    # Form 2
    "2N": "FORM 2 N",
    "2S": "FORM 2 S",
    "2MS": "FORM 2 MS",
    "2MN": "FORM 2 MN",
    "2M": "FORM 2 M",
    # Form 3
    "3N": "FORM 3 N",
    "3S": "FORM 3 S",
    "3MN": "FORM 3 MN",
    "3MS": "FORM 3 MS",
    "3M": "FORM 3 M",
    # Form 4
    "4N": "FORM 4 N",
    "4S": "FORM 4 S",
    "4MS": "FORM 4 MS",
    "4MN": "FORM 4 MN",
    # Form 5
    "5N": "FORM 5 N",
    "5MN": "FORM 5 MN",
    "5MS": "FORM 5 MS",
    "5S": "FORM 5 S",
    # Lower sixth
    "LSA": "LOWER SIXTH A1",
    # Upper sixth
    "USA1": "UPPER SIXTH A1",
    "USA2": "UPPER SIXTH A2",
    "USS1": "UPPER SIXTH S1",
    "USS2": "UPPER SIXTH S2",
}


def resolve_class_mapping(override: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return the effective mapping: ``override`` replaces the default entirely."""
    if override:
        return {str(k): str(v) for k, v in override.items()}
    return dict(DEFAULT_CLASS_MAPPING)
