"""Counts and money totals over classified records.

Each record reduces to a one-record total, and totals combine with `merge`.
Aggregating any partition of the records and merging the parts gives the same
result as aggregating everything at once.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import Decimal
from functools import reduce
from typing import Any, Iterable

from src.backend.v1.use_cases.compliance_classifier import (
    ComplianceLevel,
    ComplianceRecord,
    PayLevel,
    PaymentRecord,
)
from src.backend.v1.use_cases.normalize import ZERO, norm_name, same_company
from src.backend.v1.use_cases.panel_rules import PanelRules


def _merged(a: Any, b: Any) -> dict[str, Any]:
    return {f.name: getattr(a, f.name) + getattr(b, f.name) for f in fields(a)}


def _as_json(obj: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        out[f.name] = str(value) if isinstance(value, Decimal) else value
    return out


@dataclass(frozen=True, slots=True)
class ComplianceTotals:
    total: int = 0
    ok: int = 0
    ok_optional: int = 0
    pending: int = 0
    critical: int = 0
    waived: int = 0
    risk_pending: Decimal = ZERO
    risk_critical: Decimal = ZERO

    def merge(self, other: "ComplianceTotals") -> "ComplianceTotals":
        return ComplianceTotals(**_merged(self, other))

    @property
    def risk_total(self) -> Decimal:
        return self.risk_pending + self.risk_critical

    def to_dict(self) -> dict[str, Any]:
        out = _as_json(self)
        out["risk_total"] = str(self.risk_total)
        return out


@dataclass(frozen=True, slots=True)
class PaymentTotals:
    total: int = 0
    ok: int = 0
    pending: int = 0
    critical: int = 0
    no_invoice_company_missing_docs: int = 0
    amount_total: Decimal = ZERO
    amount_ok: Decimal = ZERO
    amount_pending: Decimal = ZERO
    amount_critical: Decimal = ZERO

    def merge(self, other: "PaymentTotals") -> "PaymentTotals":
        return PaymentTotals(**_merged(self, other))

    def counts_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "ok": self.ok,
            "pending": self.pending,
            "critical": self.critical,
            "no_invoice_company_missing_docs": self.no_invoice_company_missing_docs,
        }

    def amounts_dict(self) -> dict[str, str]:
        return {
            "total": str(self.amount_total),
            "ok": str(self.amount_ok),
            "pending": str(self.amount_pending),
            "critical": str(self.amount_critical),
        }

    def to_dict(self) -> dict[str, Any]:
        return _as_json(self)


def compliance_unit(r: ComplianceRecord) -> ComplianceTotals:
    level = r.level
    return ComplianceTotals(
        total=1,
        ok=int(level is ComplianceLevel.OK),
        ok_optional=int(level is ComplianceLevel.OK_OPTIONAL),
        pending=int(level is ComplianceLevel.PENDING),
        critical=int(level is ComplianceLevel.CRITICAL),
        waived=int(level is ComplianceLevel.WAIVED),
        risk_pending=r.risk if level is ComplianceLevel.PENDING else ZERO,
        risk_critical=r.risk if level is ComplianceLevel.CRITICAL else ZERO,
    )


def payment_unit(r: PaymentRecord, rules: PanelRules) -> PaymentTotals:
    level = r.pay_level
    amount = r.expected_amount
    return PaymentTotals(
        total=1,
        ok=int(level is PayLevel.OK),
        pending=int(level is PayLevel.PENDING),
        critical=int(level is PayLevel.CRITICAL),
        no_invoice_company_missing_docs=int(
            same_company(r.company, rules.no_invoice_company) and r.missing_document
        ),
        amount_total=amount,
        amount_ok=amount if level is PayLevel.OK else ZERO,
        amount_pending=amount if level is PayLevel.PENDING else ZERO,
        amount_critical=amount if level is PayLevel.CRITICAL else ZERO,
    )


def aggregate_compliance(records: Iterable[ComplianceRecord]) -> ComplianceTotals:
    return reduce(ComplianceTotals.merge, map(compliance_unit, records), ComplianceTotals())


def aggregate_payments(
    records: Iterable[PaymentRecord], rules: PanelRules | None = None
) -> PaymentTotals:
    rules = rules or PanelRules()
    return reduce(
        PaymentTotals.merge,
        (payment_unit(r, rules) for r in records),
        PaymentTotals(),
    )


_LEVEL_ORDER = {
    ComplianceLevel.CRITICAL: 0,
    ComplianceLevel.PENDING: 1,
    ComplianceLevel.OK: 2,
    ComplianceLevel.OK_OPTIONAL: 3,
    ComplianceLevel.WAIVED: 4,
}


def sort_compliance(records: Iterable[ComplianceRecord]) -> list[ComplianceRecord]:
    return sorted(records, key=lambda r: (_LEVEL_ORDER[r.level], norm_name(r.name)))


def sort_payments(records: Iterable[PaymentRecord]) -> list[PaymentRecord]:
    return sorted(records, key=lambda r: (r.company.casefold(), norm_name(r.name)))
