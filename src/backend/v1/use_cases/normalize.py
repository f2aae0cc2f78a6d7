"""Cell and text normalization shared by the panel use cases.

Spreadsheet cells arrive as strings (occasionally numbers or None). Nothing in
this module raises on malformed content: bad numbers become 0, bad JSON becomes
an empty mapping, missing text becomes "".
"""

from __future__ import annotations

import json
import re
import unicodedata
from decimal import Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")

_FLAG_SEPARATORS = re.compile(r"[,;|/]+")
_TOKEN_GAPS = re.compile(r"[\s\-]+")


def strip_accents(s: str) -> str:
    decomposed = unicodedata.normalize("NFD", s)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def norm_name(value: Any) -> str:
    """Join key for people: case-folded, accent-stripped, trimmed, single-spaced.

    Both the audit and the finance paths look people up through this key, so
    "  MARIA  Silva" and "maria silva" (or "Maria Sílva") land on the same row.
    """

    text = strip_accents(cell_text(value)).casefold()
    return " ".join(text.split())


def norm_token(value: Any) -> str:
    """Upper-case, accent-free token; runs of spaces/hyphens become '_'."""

    text = strip_accents(cell_text(value)).upper()
    return _TOKEN_GAPS.sub("_", text)


def company_key(company: Any) -> str:
    """Sheet-name form of a company ('T.Youth' -> 'TYouth')."""

    return cell_text(company).replace(".", "").replace(" ", "")


def same_company(a: Any, b: Any) -> bool:
    ka = company_key(a).casefold()
    return bool(ka) and ka == company_key(b).casefold()


def _canonical_number(s: str) -> str:
    """Rewrite a cleaned numeric string so Decimal() can parse it.

    pt-BR sheets use '.' for thousands and ',' for decimals ("1.234,56"); a few
    columns come through as plain decimals ("1234.56").
    """

    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            return s.replace(".", "").replace(",", ".")
        return s.replace(",", "")
    if "," in s:
        if s.count(",") > 1:
            return s.replace(",", "")
        return s.replace(",", ".")
    if s.count(".") > 1:
        return s.replace(".", "")
    if "." in s and len(s.rsplit(".", 1)[1]) == 3:
        # "1.500" is fifteen hundred in pt-BR
        return s.replace(".", "")
    return s


def parse_amount(value: Any) -> Decimal:
    """Parse a money cell into Decimal; anything unparseable is 0.

    Handles:
    - currency symbols and spaces ("R$ 1.234,56")
    - pt-BR and plain decimal separators
    - parentheses for negatives
    - JSON numbers
    """

    if value is None or isinstance(value, bool):
        return ZERO

    if isinstance(value, (int, float, Decimal)):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return ZERO
        return amount if amount.is_finite() else ZERO

    # Lists and objects from JSON cells are not amounts.
    if not isinstance(value, str):
        return ZERO

    s = cell_text(value)
    if not s:
        return ZERO

    negative = False
    if s.startswith("(") and s.endswith(")"):
        negative = True
        s = s[1:-1]

    s = re.sub(r"[^0-9,.\-]", "", s)
    if not s or s in {"-", ".", ","}:
        return ZERO

    try:
        amount = Decimal(_canonical_number(s))
    except InvalidOperation:
        return ZERO

    if not amount.is_finite():
        return ZERO
    return -amount if negative else amount


def parse_json_mapping(value: Any) -> dict[str, Any]:
    """Parse a JSON-object cell; anything else yields {}."""

    if isinstance(value, dict):
        return value

    text = cell_text(value)
    if not text:
        return {}

    try:
        parsed = json.loads(text)
    except (ValueError, TypeError):
        return {}

    return parsed if isinstance(parsed, dict) else {}


def split_flags(value: Any) -> list[str]:
    """Split a flags cell ("SEM_NF, SEM_LINK; PDF ILEGIVEL") into trimmed tokens."""

    text = cell_text(value)
    if not text:
        return []
    return [part.strip() for part in _FLAG_SEPARATORS.split(text) if part.strip()]
