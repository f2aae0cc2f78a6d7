"""'Pay this month' for the hires/raises/terminations update sheets.

Finance pays from whichever amount the GC team filled in:
- terminations (DESLIG / ENCERRAMENTO): the termination total, else nothing
- everything else: prorated salary, else salary + DAS, else adjusted salary,
  else current salary
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Sequence

from src.backend.v1.integrations.google_sheets_reader import rows_to_records
from src.backend.v1.use_cases.normalize import ZERO, cell_text, norm_token, parse_amount
from src.backend.v1.use_cases.panel_rules import PanelRules
from src.backend.v1.use_cases.rbac import (
    match_any_company,
    match_company,
    selects_all,
)

SOURCE_TERMINATION = "RESCISAO"
SOURCE_PRORATED = "PROP"
SOURCE_SALARY_PLUS_DAS = "SOMA"
SOURCE_ADJUSTED = "REAJ"
SOURCE_CURRENT = "ATUAL"
SOURCE_NONE = "ZERO"

# Checked in order for anything that is not a termination.
_SALARY_SOURCES: tuple[tuple[str, str], ...] = (
    ("prorated_salary", SOURCE_PRORATED),
    ("salary_plus_das", SOURCE_SALARY_PLUS_DAS),
    ("adjusted_salary", SOURCE_ADJUSTED),
    ("current_salary", SOURCE_CURRENT),
)


def is_termination(action: str) -> bool:
    a = norm_token(action)
    return "DESLIG" in a or "ENCERRAMENTO" in a


def is_hire(action: str) -> bool:
    return "CONTRAT" in norm_token(action)


def is_raise(action: str) -> bool:
    return "REAJUST" in norm_token(action)


def pay_this_month(record: dict[str, Any]) -> tuple[Decimal, str]:
    if is_termination(cell_text(record.get("action"))):
        amount = parse_amount(record.get("termination_total"))
        return (amount, SOURCE_TERMINATION) if amount > 0 else (ZERO, SOURCE_NONE)

    for field, source in _SALARY_SOURCES:
        amount = parse_amount(record.get(field))
        if amount > 0:
            return amount, source
    return ZERO, SOURCE_NONE


@dataclass(frozen=True, slots=True)
class UpdateRow:
    fields: dict[str, str]
    pay_amount: Decimal
    pay_source: str

    def to_dict(self) -> dict[str, Any]:
        return {**self.fields, "pay_this_month": str(self.pay_amount), "pay_source": self.pay_source}


@dataclass(frozen=True, slots=True)
class UpdatesReport:
    rows: tuple[UpdateRow, ...]
    actions: tuple[str, ...]

    @property
    def stats(self) -> dict[str, Any]:
        actions = [r.fields.get("action", "") for r in self.rows]
        return {
            "rows": len(self.rows),
            "hires": sum(1 for a in actions if is_hire(a)),
            "raises": sum(1 for a in actions if is_raise(a)),
            "terminations": sum(1 for a in actions if is_termination(a)),
            "total_to_pay": str(sum((r.pay_amount for r in self.rows), ZERO)),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows": [r.to_dict() for r in self.rows],
            "actions": list(self.actions),
            "stats": self.stats,
        }


def compute_updates(
    rows: Sequence[Sequence[Any]],
    company: str = "",
    action: str = "",
    rules: PanelRules | None = None,
    *,
    visible_companies: Sequence[str] | None = None,
) -> UpdatesReport:
    """Enrich update rows with the amount to pay, then filter by company and action.

    `actions` lists the distinct actions left after the company filter (before
    the action filter) so callers can offer them as choices. An action filter matches exactly.
    `visible_companies` limits rows when no single company is selected.
    """

    rules = rules or PanelRules()
    records = [
        {k: cell_text(v) for k, v in rec.items()}
        for rec in rows_to_records(rows, rules.columns_for("updates"))
    ]
    records = [r for r in records if any(r.values())]

    if not selects_all(company):
        records = [r for r in records if match_company(r.get("company", ""), company, rules)]
    elif visible_companies is not None:
        records = [
            r
            for r in records
            if match_any_company(r.get("company", ""), visible_companies, rules)
        ]

    actions = tuple(sorted({r["action"] for r in records if r.get("action")}))

    wanted = cell_text(action)
    if not selects_all(wanted):
        records = [r for r in records if r.get("action") == wanted]

    out = []
    for rec in records:
        amount, source = pay_this_month(rec)
        out.append(UpdateRow(fields=rec, pay_amount=amount, pay_source=source))

    return UpdatesReport(rows=tuple(out), actions=actions)
