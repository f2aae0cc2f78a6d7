"""The ops-data pipeline: sheet plan -> classification -> role-filtered report.

Split in two so the API can do I/O in between:
1) `plan_ranges` decides which existing tabs to read for a period
2) `build_ops_report` classifies the rows returned by one batch read
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from src.backend.v1.integrations.google_sheets_reader import sheet_range
from src.backend.v1.use_cases.compliance_classifier import (
    PaymentRecord,
    classify_compliance,
    classify_payment,
    index_by_name,
    resolve_policy,
)
from src.backend.v1.use_cases.ops_metrics import (
    aggregate_compliance,
    aggregate_payments,
    sort_compliance,
    sort_payments,
)
from src.backend.v1.use_cases.panel_rules import PanelRules
from src.backend.v1.use_cases.rbac import visible_compliance
from src.backend.v1.use_cases.sheet_catalog import (
    audit_sheet_name,
    clt_sheet_name,
    finance_sheet_name,
    policy_sheet_name,
    summarize_clt,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SheetPlan:
    period: str
    audit_sheet: str
    policy_sheet: str
    clt_sheet: str
    # (company, sheet title) for visible companies whose tab exists
    finance_sheets: tuple[tuple[str, str], ...]
    existing: frozenset[str]

    @property
    def ranges(self) -> list[str]:
        titles = [self.audit_sheet, self.policy_sheet, self.clt_sheet]
        titles += [sheet for _, sheet in self.finance_sheets]
        return [sheet_range(t) for t in titles if t in self.existing]


def plan_ranges(
    period: str,
    titles: Iterable[str],
    allowed_companies: Sequence[str],
    rules: PanelRules | None = None,
) -> SheetPlan:
    """Only tabs that exist are planned; one unknown tab fails a whole batch read."""

    rules = rules or PanelRules()
    existing = frozenset(titles)
    finance = tuple(
        (c, finance_sheet_name(c, period))
        for c in rules.companies
        if c in allowed_companies and finance_sheet_name(c, period) in existing
    )
    return SheetPlan(
        period=period,
        audit_sheet=audit_sheet_name(period),
        policy_sheet=policy_sheet_name(period),
        clt_sheet=clt_sheet_name(period),
        finance_sheets=finance,
        existing=existing,
    )


def build_ops_report(
    *,
    plan: SheetPlan,
    role: str,
    allowed_companies: Sequence[str],
    sheet_values: Mapping[str, Sequence[Sequence[Any]]],
    window_open: bool,
    rules: PanelRules | None = None,
) -> dict[str, Any]:
    """Classify one period and shape the `ops-data` payload sections.

    Missing tabs are treated as empty tables.
    """

    rules = rules or PanelRules()

    policy = resolve_policy(sheet_values.get(plan.policy_sheet) or [], rules)
    compliance = classify_compliance(
        sheet_values.get(plan.audit_sheet) or [], policy, window_open, rules
    )
    by_name = index_by_name(compliance)

    payments: list[PaymentRecord] = []
    for company, sheet in plan.finance_sheets:
        payments.extend(
            classify_payment(
                company, sheet_values.get(sheet) or [], policy, by_name, window_open, rules
            )
        )

    visible = sort_compliance(visible_compliance(compliance, role, allowed_companies))
    payments = sort_payments(payments)

    compliance_totals = aggregate_compliance(visible)
    payment_totals = aggregate_payments(payments, rules)

    logger.info(
        "ops report %s role=%s audit=%d visible=%d payments=%d window_open=%s",
        plan.period,
        role,
        len(compliance),
        len(visible),
        len(payments),
        window_open,
    )

    return {
        "policy": {"sheet": plan.policy_sheet, "count": len(policy)},
        "audit": {
            "rows": [r.to_dict() for r in visible],
            "counts": {
                "total": compliance_totals.total,
                "ok": compliance_totals.ok,
                "ok_optional": compliance_totals.ok_optional,
                "pending": compliance_totals.pending,
                "critical": compliance_totals.critical,
                "waived": compliance_totals.waived,
            },
            "risk": {
                "pending": str(compliance_totals.risk_pending),
                "critical": str(compliance_totals.risk_critical),
            },
        },
        "finance": {
            "rows": [r.to_dict() for r in payments],
            "counts": payment_totals.counts_dict(),
            "totals": payment_totals.amounts_dict(),
        },
        "clt": summarize_clt(plan.clt_sheet, sheet_values.get(plan.clt_sheet) or []).to_dict(),
    }
