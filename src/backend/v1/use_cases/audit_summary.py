"""Traffic-light summary of one AUDITORIA sheet.

Rows are graded independently of the policy/closing-window pipeline:
- crit: invoice number or link missing, or a flag contains a critical token
- warn: any other flag
- ok: nothing flagged
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Sequence

from src.backend.v1.integrations.google_sheets_reader import rows_to_records
from src.backend.v1.use_cases.normalize import cell_text, norm_token, split_flags
from src.backend.v1.use_cases.panel_rules import PanelRules
from src.backend.v1.use_cases.rbac import match_any_company, match_company, selects_all

OK = "ok"
WARN = "warn"
CRIT = "crit"

MISSING_LINK_FLAG = "SEM_LINK"
MISSING_INVOICE_FLAG = "SEM_NF"

BREAKDOWN_LIMIT = 10
TOP_CRITICAL_LIMIT = 12


@dataclass(frozen=True, slots=True)
class CriticalRow:
    name: str
    company: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "company": self.company, "reason": self.reason}


@dataclass(frozen=True, slots=True)
class AuditSummary:
    total: int
    ok: int
    warn: int
    crit: int
    breakdown: tuple[tuple[str, int], ...]
    top_critical: tuple[CriticalRow, ...]

    @property
    def semaphore(self) -> str:
        if self.crit:
            return "red"
        if self.warn:
            return "yellow"
        return "green"

    def to_dict(self) -> dict[str, Any]:
        return {
            "totals": {"total": self.total, "ok": self.ok, "warn": self.warn, "crit": self.crit},
            "semaphore": self.semaphore,
            "breakdown": [{"flag": f, "count": c} for f, c in self.breakdown],
            "top_critical": [r.to_dict() for r in self.top_critical],
        }


def grade_row(
    flags: Sequence[str], *, invoice_number: str, invoice_link: str, critical_tokens: Sequence[str]
) -> str:
    vocabulary = [norm_token(t) for t in critical_tokens if norm_token(t)]
    if not invoice_number or not invoice_link:
        return CRIT
    if any(v in norm_token(f) for f in flags for v in vocabulary):
        return CRIT
    return WARN if flags else OK


def _critical_reason(flags: Sequence[str], *, invoice_number: str, invoice_link: str) -> str:
    reasons = []
    if not invoice_number:
        reasons.append("no invoice")
    if not invoice_link:
        reasons.append("no link")
    if flags:
        reasons.append(", ".join(flags))
    return " / ".join(reasons)


def summarize_audit_sheet(
    rows: Sequence[Sequence[Any]],
    company: str = "",
    rules: PanelRules | None = None,
    *,
    visible_companies: Sequence[str] | None = None,
) -> AuditSummary:
    """Grade every row, optionally keeping only one company's rows.

    `visible_companies` restricts the sheet to rows of those companies when no
    single company is selected (non-GC callers).
    """

    rules = rules or PanelRules()
    records = rows_to_records(rows, rules.columns_for("audit"))
    if not selects_all(company):
        records = [r for r in records if match_company(cell_text(r["company"]), company, rules)]
    elif visible_companies is not None:
        records = [
            r
            for r in records
            if match_any_company(cell_text(r["company"]), visible_companies, rules)
        ]

    grades: Counter[str] = Counter()
    breakdown: Counter[str] = Counter()
    top_critical: list[CriticalRow] = []

    for rec in records:
        flags = [f.upper() for f in split_flags(rec["flags"])]
        invoice_number = cell_text(rec["invoice_number"])
        invoice_link = cell_text(rec["invoice_link"])

        grade = grade_row(
            flags,
            invoice_number=invoice_number,
            invoice_link=invoice_link,
            critical_tokens=rules.audit_summary_critical_tokens,
        )
        grades[grade] += 1

        breakdown.update(flags)
        if not invoice_link:
            breakdown[MISSING_LINK_FLAG] += 1
        if not invoice_number:
            breakdown[MISSING_INVOICE_FLAG] += 1

        if grade == CRIT and len(top_critical) < TOP_CRITICAL_LIMIT:
            top_critical.append(
                CriticalRow(
                    name=cell_text(rec["name"]),
                    company=cell_text(rec["company"]),
                    reason=_critical_reason(
                        flags, invoice_number=invoice_number, invoice_link=invoice_link
                    ),
                )
            )

    return AuditSummary(
        total=len(records),
        ok=grades[OK],
        warn=grades[WARN],
        crit=grades[CRIT],
        breakdown=tuple(breakdown.most_common(BREAKDOWN_LIMIT)),
        top_critical=tuple(top_critical),
    )
