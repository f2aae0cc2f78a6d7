"""Sheet naming conventions and the catalog of available periods.

One spreadsheet holds every period. Tabs follow fixed names:
- AUDITORIA_<comp>           compliance audit
- NF_POLICY_<comp>           invoice policy exceptions
- FIN_<companyKey>_<comp>    payments for one company ("FIN_TYouth_FEV-26")
- FOLHA_CLT_<comp>           CLT payroll
Update tabs (hires, raises, terminations) are named freely but contain
"UPDATE" or "ATUALIZA".
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Sequence

from src.backend.v1.use_cases.normalize import (
    ZERO,
    cell_text,
    company_key,
    parse_amount,
    strip_accents,
)

AUDIT_PREFIX = "AUDITORIA_"
POLICY_PREFIX = "NF_POLICY_"
FINANCE_PREFIX = "FIN_"
CLT_PREFIX = "FOLHA_CLT_"

# pt-BR abbreviations first; English spellings of the months that differ.
_MONTHS = {
    "jan": 1,
    "fev": 2,
    "mar": 3,
    "abr": 4,
    "mai": 5,
    "jun": 6,
    "jul": 7,
    "ago": 8,
    "set": 9,
    "out": 10,
    "nov": 11,
    "dez": 12,
    "feb": 2,
    "apr": 4,
    "may": 5,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "dec": 12,
}

_PERIOD_RE = re.compile(r"(?<![a-z])([a-z]{3})[a-z]*[\s_\-/]*(\d{4}|\d{2})\b")


def audit_sheet_name(period: str) -> str:
    return f"{AUDIT_PREFIX}{period}"


def policy_sheet_name(period: str) -> str:
    return f"{POLICY_PREFIX}{period}"


def clt_sheet_name(period: str) -> str:
    return f"{CLT_PREFIX}{period}"


def finance_sheet_name(company: str, period: str) -> str:
    return f"{FINANCE_PREFIX}{company_key(company)}_{period}"


def is_updates_sheet(title: str) -> bool:
    up = strip_accents(cell_text(title)).upper()
    return "UPDATE" in up or "ATUALIZA" in up


def parse_period(text: str) -> date | None:
    """Parse 'FEV-26', 'Jan 2026' or 'UPDATES - Mar-26' into the first day of that month.

    Used for ordering only.
    """

    s = strip_accents(cell_text(text)).lower()
    for m in _PERIOD_RE.finditer(s):
        mon = _MONTHS.get(m.group(1))
        if not mon:
            continue
        year = int(m.group(2))
        if year < 100:
            year += 2000
        return date(year, mon, 1)
    return None


def period_sort_key(text: str) -> tuple[int, date, str]:
    """Chronological order; unparseable names sort last, alphabetically."""

    d = parse_period(text)
    return (0, d, text) if d else (1, date.min, text)


def pick_latest_update_sheet(titles: Iterable[str]) -> str | None:
    candidates = [t for t in titles if is_updates_sheet(t)]
    dated = [t for t in candidates if parse_period(t)]
    if dated:
        return max(dated, key=period_sort_key)
    return sorted(candidates)[-1] if candidates else None


@dataclass(frozen=True, slots=True)
class SheetCatalog:
    periods: tuple[str, ...]
    finance_sheets: tuple[str, ...]
    update_sheets: tuple[str, ...]

    @property
    def latest_period(self) -> str | None:
        dated = [p for p in self.periods if parse_period(p)]
        return max(dated, key=period_sort_key) if dated else None

    @property
    def latest_update_sheet(self) -> str | None:
        return pick_latest_update_sheet(self.update_sheets)

    def to_dict(self) -> dict[str, Any]:
        return {
            "periods": list(self.periods),
            "finance_sheets": list(self.finance_sheets),
            "update_sheets": list(self.update_sheets),
            "latest_period": self.latest_period,
            "latest_update_sheet": self.latest_update_sheet,
        }


def build_catalog(titles: Iterable[str]) -> SheetCatalog:
    titles = [t for t in titles if t]
    periods = {t[len(AUDIT_PREFIX) :] for t in titles if t.startswith(AUDIT_PREFIX)}
    periods.discard("")
    return SheetCatalog(
        periods=tuple(sorted(periods, key=period_sort_key)),
        finance_sheets=tuple(sorted(t for t in titles if t.startswith(FINANCE_PREFIX))),
        update_sheets=tuple(sorted(t for t in titles if is_updates_sheet(t))),
    )


@dataclass(frozen=True, slots=True)
class CltSummary:
    sheet: str
    rows: int = 0
    total_net: Decimal = ZERO

    def to_dict(self) -> dict[str, Any]:
        return {"sheet": self.sheet, "rows": self.rows, "total_net": str(self.total_net)}


def summarize_clt(sheet: str, rows: Sequence[Sequence[Any]]) -> CltSummary:
    """Count non-empty payroll rows and sum the net-pay column, when one exists."""

    if not rows or len(rows) < 2:
        return CltSummary(sheet=sheet)

    header = [strip_accents(cell_text(h)).lower() for h in rows[0] or []]
    net_idx = next(
        (i for i, h in enumerate(header) if "liquido" in h or "net" in h),
        None,
    )

    count = 0
    total = ZERO
    for r in rows[1:]:
        r = r or []
        if not any(cell_text(c) for c in r):
            continue
        count += 1
        if net_idx is not None and net_idx < len(r):
            total += parse_amount(r[net_idx])

    return CltSummary(sheet=sheet, rows=count, total_net=total)
