"""Role-based visibility for the panel.

Roles map to the companies whose rows a caller may see. The mapping itself
lives in the panel rulebook; this module only applies it.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from src.backend.v1.use_cases.compliance_classifier import ComplianceRecord
from src.backend.v1.use_cases.normalize import cell_text, company_key, same_company, strip_accents
from src.backend.v1.use_cases.panel_rules import PanelRules

ROLE_GC = "gc"
ROLE_FINANCE_YOUTH = "finance_youth"
ROLE_FINANCE_CORE = "finance_core"
ROLE_VIEWER = "viewer"

# Later entries win when an email appears in more than one list.
ROLE_PRECEDENCE: tuple[str, ...] = (ROLE_GC, ROLE_FINANCE_YOUTH, ROLE_FINANCE_CORE)

# Filter values meaning "no filter" for company and action selections.
ALL_MARKERS = frozenset({"", "TODAS", "ALL"})


def companies_for_role(role: str, rules: PanelRules | None = None) -> list[str]:
    rules = rules or PanelRules()
    return list(rules.role_companies.get(role, ()))


def can_see_company(allowed: Sequence[str], company: str) -> bool:
    return any(same_company(a, company) for a in allowed)


def visible_compliance(
    records: Iterable[ComplianceRecord], role: str, allowed: Sequence[str]
) -> list[ComplianceRecord]:
    """GC sees every audit row; other roles only rows declaring a visible company."""

    if role == ROLE_GC:
        return list(records)
    return [r for r in records if any(can_see_company(allowed, c) for c in r.companies)]


def role_for_email(email: str, role_emails: Mapping[str, Iterable[str]]) -> str:
    who = cell_text(email).lower()
    if not who:
        return ROLE_VIEWER

    role = ROLE_VIEWER
    for candidate in ROLE_PRECEDENCE:
        members = {cell_text(e).lower() for e in role_emails.get(candidate, ())}
        if who in members:
            role = candidate
    return role


def _company_text(s: str) -> str:
    return " ".join(strip_accents(cell_text(s)).upper().replace(".", "").split())


def selects_all(value: str) -> bool:
    """True for a blank, TODAS or ALL filter value."""
    return _company_text(value) in ALL_MARKERS


def match_company(sheet_company: str, selected: str, rules: PanelRules | None = None) -> bool:
    """Fuzzy match of a free-text company cell against a selected company.

    Cells carry legacy names ("TOY - Formaturas", "Holding") so each company
    also matches through its aliases.
    """

    rules = rules or PanelRules()
    sel = _company_text(selected)
    if sel in ALL_MARKERS:
        return True

    cell = _company_text(sheet_company)
    if not cell:
        return False

    needles = [sel]
    for company, aliases in rules.company_aliases.items():
        if same_company(company, selected):
            needles = [company_key(company).upper(), *(_company_text(a) for a in aliases)]
            break

    return any(n and n in cell for n in needles)


def match_any_company(
    sheet_company: str, companies: Sequence[str], rules: PanelRules | None = None
) -> bool:
    return any(match_company(sheet_company, c, rules) for c in companies if cell_text(c))
