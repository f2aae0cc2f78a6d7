"""Compliance and pay-level classification for one accounting period.

Joins three sheet-derived tables by normalized person name:
- NF_POLICY_<comp>: per-person invoice policy exceptions
- AUDITORIA_<comp>: compliance audit rows (one per person)
- FIN_<company>_<comp>: payment rows (one per person per company)

No network calls here: functions accept already-fetched rows and a boolean
closing-window flag. Malformed cells never raise; they fall back to "", 0 or {}.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

from src.backend.v1.integrations.google_sheets_reader import rows_to_records
from src.backend.v1.use_cases.normalize import (
    ZERO,
    cell_text,
    norm_name,
    norm_token,
    parse_amount,
    parse_json_mapping,
    same_company,
    split_flags,
)
from src.backend.v1.use_cases.panel_rules import PanelRules

NOT_FOUND = "NOT_FOUND"


class PolicyRule(str, Enum):
    MANDATORY = "MANDATORY"
    OPTIONAL = "OPTIONAL"
    WAIVED = "WAIVED"


class ComplianceLevel(str, Enum):
    OK = "OK"
    OK_OPTIONAL = "OK_OPTIONAL"
    PENDING = "PENDING"
    CRITICAL = "CRITICAL"
    WAIVED = "WAIVED"


class PayLevel(str, Enum):
    OK = "OK"
    PENDING = "PENDING"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True, slots=True)
class PolicyException:
    rule: PolicyRule
    reason: str = ""
    company: str = ""


@dataclass(frozen=True, slots=True)
class ComplianceRecord:
    name: str
    period: str
    status: str
    invoice_number: str
    invoice_link: str
    monthly_salary: Decimal
    flags: tuple[str, ...]
    companies: tuple[str, ...]
    primary_company: str
    policy_rule: PolicyRule
    policy_reason: str
    explicit_policy: bool
    hard_errors: bool
    level: ComplianceLevel
    reason: str
    risk: Decimal

    @property
    def missing_invoice_number(self) -> bool:
        return not self.invoice_number

    @property
    def missing_invoice_link(self) -> bool:
        return not self.invoice_link

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "period": self.period,
            "status": self.status,
            "invoice_number": self.invoice_number,
            "invoice_link": self.invoice_link,
            "monthly_salary": str(self.monthly_salary),
            "flags": list(self.flags),
            "companies": list(self.companies),
            "primary_company": self.primary_company,
            "policy_rule": self.policy_rule.value,
            "policy_reason": self.policy_reason,
            "explicit_policy": self.explicit_policy,
            "hard_errors": self.hard_errors,
            "compliance_level": self.level.value,
            "reason": self.reason,
            "risk": str(self.risk),
        }


@dataclass(frozen=True, slots=True)
class PaymentRecord:
    company: str
    period: str
    name: str
    expected_amount: Decimal
    invoice_number: str
    invoice_link: str
    policy_rule: PolicyRule
    policy_reason: str
    compliance_level: str
    pay_level: PayLevel
    reason: str

    @property
    def missing_document(self) -> bool:
        return not self.invoice_number or not self.invoice_link

    def to_dict(self) -> dict[str, Any]:
        return {
            "company": self.company,
            "period": self.period,
            "name": self.name,
            "expected_amount": str(self.expected_amount),
            "invoice_number": self.invoice_number,
            "invoice_link": self.invoice_link,
            "policy_rule": self.policy_rule.value,
            "policy_reason": self.policy_reason,
            "compliance_level": self.compliance_level,
            "pay_level": self.pay_level.value,
            "reason": self.reason,
        }


# ---------------------------------------------------------------------------
# Rule tables
# ---------------------------------------------------------------------------


def classify_rule_text(text: Any) -> PolicyRule:
    """Map free-text policy cells ("Dispensada", "OPCIONAL", "obrigatória") to a rule."""

    t = norm_token(text)
    if "DISP" in t or "WAIV" in t:
        return PolicyRule.WAIVED
    if "OPC" in t or "OPTION" in t:
        return PolicyRule.OPTIONAL
    return PolicyRule.MANDATORY


def has_hard_errors(flags: Iterable[str], tokens: Iterable[str]) -> bool:
    vocabulary = [norm_token(t) for t in tokens if norm_token(t)]
    return any(v in norm_token(f) for f in flags for v in vocabulary)


def default_compliance_rule(companies: Sequence[str], rules: PanelRules) -> PolicyRule:
    if len(companies) == 1 and same_company(companies[0], rules.no_invoice_company):
        return PolicyRule.OPTIONAL
    return PolicyRule.MANDATORY


def default_payment_rule(company: str, rules: PanelRules) -> PolicyRule:
    if same_company(company, rules.no_invoice_company):
        return PolicyRule.OPTIONAL
    return PolicyRule.MANDATORY


def compliance_level(
    *,
    rule: PolicyRule,
    hard_errors: bool,
    missing_document: bool,
    window_open: bool,
) -> ComplianceLevel:
    """Priority order, first match wins."""

    if rule is PolicyRule.WAIVED:
        return ComplianceLevel.WAIVED
    if hard_errors:
        return ComplianceLevel.CRITICAL
    if not missing_document:
        return ComplianceLevel.OK
    if rule is PolicyRule.OPTIONAL:
        return ComplianceLevel.OK_OPTIONAL
    return ComplianceLevel.PENDING if window_open else ComplianceLevel.CRITICAL


def pay_level(
    *,
    company: str,
    rule: PolicyRule,
    missing_document: bool,
    window_open: bool,
    rules: PanelRules,
) -> PayLevel:
    if same_company(company, rules.no_invoice_company):
        return PayLevel.OK
    if rule is PolicyRule.WAIVED:
        return PayLevel.OK
    if not missing_document:
        return PayLevel.OK
    return PayLevel.PENDING if window_open else PayLevel.CRITICAL


def risk_amount(level: ComplianceLevel, rule: PolicyRule, monthly_salary: Decimal) -> Decimal:
    if level in (ComplianceLevel.PENDING, ComplianceLevel.CRITICAL) and rule is PolicyRule.MANDATORY:
        return monthly_salary
    return ZERO


def _missing_text(missing_number: bool, missing_link: bool) -> str:
    parts = []
    if missing_number:
        parts.append("no invoice number")
    if missing_link:
        parts.append("no invoice link")
    return ", ".join(parts)


def _waived_reason(policy_reason: str) -> str:
    return f"Waived: {policy_reason}" if policy_reason else "Waived by policy"


def _compliance_reason(
    level: ComplianceLevel,
    *,
    hard_errors: bool,
    policy_reason: str,
    missing: str,
) -> str:
    if level is ComplianceLevel.WAIVED:
        return _waived_reason(policy_reason)
    if level is ComplianceLevel.OK_OPTIONAL:
        return "Invoice optional"
    if level is ComplianceLevel.PENDING:
        return f"Within closing window (pending): {missing}"
    if level is ComplianceLevel.CRITICAL:
        if hard_errors:
            return "Structural error (apportionment/monthly salary)"
        return f"Closing window over (critical): {missing}"
    return ""


def _payment_reason(
    *,
    company: str,
    rule: PolicyRule,
    policy_reason: str,
    missing_number: bool,
    missing_link: bool,
    rules: PanelRules,
) -> str:
    missing = missing_number or missing_link
    if same_company(company, rules.no_invoice_company):
        if not missing:
            return ""
        if rule is PolicyRule.WAIVED:
            return _waived_reason(policy_reason)
        if rule is PolicyRule.OPTIONAL:
            return f"Invoice optional ({company})"
        return f"Invoice pending (GC); payment proceeds ({company})"

    if rule is PolicyRule.WAIVED:
        return _waived_reason(policy_reason)
    if not missing:
        return ""
    return _missing_text(missing_number, missing_link)


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def resolve_policy(
    raw_policy_rows: Sequence[Sequence[Any]],
    rules: PanelRules | None = None,
) -> dict[str, PolicyException]:
    """NF_POLICY rows -> {normalized name: PolicyException}; last row wins."""

    rules = rules or PanelRules()
    out: dict[str, PolicyException] = {}
    for rec in rows_to_records(raw_policy_rows, rules.columns_for("policy")):
        name = cell_text(rec["name"])
        if not name:
            continue
        out[norm_name(name)] = PolicyException(
            rule=classify_rule_text(rec["rule"]),
            reason=cell_text(rec["reason"]),
            company=cell_text(rec["company"]),
        )
    return out


def declared_companies(expected_cell: Any) -> tuple[tuple[str, ...], str]:
    """Companies with a non-zero expected amount, plus the one with the largest amount.

    Ties keep the first company seen.
    """

    companies: list[str] = []
    primary = ""
    best: Decimal | None = None
    for key, raw_amount in parse_json_mapping(expected_cell).items():
        company = str(key).strip()
        amount = parse_amount(raw_amount)
        if not company or amount == 0:
            continue
        companies.append(company)
        if best is None or amount > best:
            best = amount
            primary = company
    return tuple(companies), primary


def classify_compliance(
    raw_audit_rows: Sequence[Sequence[Any]],
    policy: Mapping[str, PolicyException],
    window_open: bool,
    rules: PanelRules | None = None,
) -> list[ComplianceRecord]:
    rules = rules or PanelRules()
    out: list[ComplianceRecord] = []

    for rec in rows_to_records(raw_audit_rows, rules.columns_for("audit")):
        name = cell_text(rec["name"])
        if not name:
            continue

        invoice_number = cell_text(rec["invoice_number"])
        invoice_link = cell_text(rec["invoice_link"])
        monthly_salary = parse_amount(rec["monthly_salary"])
        flags = tuple(split_flags(rec["flags"]))
        companies, primary_company = declared_companies(rec["expected"])

        explicit = policy.get(norm_name(name))
        rule = explicit.rule if explicit else default_compliance_rule(companies, rules)
        policy_reason = explicit.reason if explicit else ""

        hard_errors = has_hard_errors(flags, rules.hard_error_tokens)
        missing_number = not invoice_number
        missing_link = not invoice_link

        level = compliance_level(
            rule=rule,
            hard_errors=hard_errors,
            missing_document=missing_number or missing_link,
            window_open=window_open,
        )

        out.append(
            ComplianceRecord(
                name=name,
                period=cell_text(rec["period"]),
                status=cell_text(rec["status"]),
                invoice_number=invoice_number,
                invoice_link=invoice_link,
                monthly_salary=monthly_salary,
                flags=flags,
                companies=companies,
                primary_company=primary_company,
                policy_rule=rule,
                policy_reason=policy_reason,
                explicit_policy=explicit is not None,
                hard_errors=hard_errors,
                level=level,
                reason=_compliance_reason(
                    level,
                    hard_errors=hard_errors,
                    policy_reason=policy_reason,
                    missing=_missing_text(missing_number, missing_link),
                ),
                risk=risk_amount(level, rule, monthly_salary),
            )
        )

    return out


def index_by_name(records: Iterable[ComplianceRecord]) -> dict[str, ComplianceRecord]:
    return {norm_name(r.name): r for r in records}


def classify_payment(
    company: str,
    raw_finance_rows: Sequence[Sequence[Any]],
    policy: Mapping[str, PolicyException],
    compliance_by_name: Mapping[str, ComplianceRecord],
    window_open: bool,
    rules: PanelRules | None = None,
) -> list[PaymentRecord]:
    rules = rules or PanelRules()
    out: list[PaymentRecord] = []

    for rec in rows_to_records(raw_finance_rows, rules.columns_for("finance")):
        name = cell_text(rec["name"])
        if not name:
            continue

        key = norm_name(name)
        invoice_number = cell_text(rec["invoice_number"])
        invoice_link = cell_text(rec["invoice_link"])

        explicit = policy.get(key)
        rule = explicit.rule if explicit else default_payment_rule(company, rules)
        policy_reason = explicit.reason if explicit else ""

        linked = compliance_by_name.get(key)
        missing_number = not invoice_number
        missing_link = not invoice_link

        out.append(
            PaymentRecord(
                company=company,
                period=cell_text(rec["period"]),
                name=name,
                expected_amount=parse_amount(rec["expected_amount"]),
                invoice_number=invoice_number,
                invoice_link=invoice_link,
                policy_rule=rule,
                policy_reason=policy_reason,
                compliance_level=linked.level.value if linked else NOT_FOUND,
                pay_level=pay_level(
                    company=company,
                    rule=rule,
                    missing_document=missing_number or missing_link,
                    window_open=window_open,
                    rules=rules,
                ),
                reason=_payment_reason(
                    company=company,
                    rule=rule,
                    policy_reason=policy_reason,
                    missing_number=missing_number,
                    missing_link=missing_link,
                    rules=rules,
                ),
            )
        )

    return out
