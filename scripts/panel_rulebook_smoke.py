"""Smoke test: validate the panel YAML rulebook.

This is intentionally lightweight and does NOT call external systems.
It catches common issues (roles naming unknown companies, a no-invoice company
missing from the company list, column tables without a name column) so you
can edit the rulebook safely.

Run:
  python scripts/panel_rulebook_smoke.py

Optional env vars:
  PANEL_RULEBOOK_PATH  (default: data/panel_rulebook.yaml)
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Allow running as: `python scripts/panel_rulebook_smoke.py`
_REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _REPO_ROOT not in sys.path:
    sys.path.insert(0, _REPO_ROOT)

load_dotenv(override=False)

from src.backend.v1.use_cases.panel_rules import PanelRulesError, load_panel_rules  # noqa: E402

REQUIRED_ROLES = ("gc", "finance_youth", "finance_core", "viewer")
NAME_TABLES = ("policy", "audit", "finance", "updates")


def _fail(msg: str) -> int:
    print(f"ERROR: {msg}", file=sys.stderr)
    return 1


def main(path: str | None = None) -> int:
    path = path or os.environ.get("PANEL_RULEBOOK_PATH") or os.path.join(
        _REPO_ROOT, "data", "panel_rulebook.yaml"
    )

    try:
        rules = load_panel_rules(Path(path))
    except PanelRulesError as e:
        return _fail(str(e))

    if not rules.companies:
        return _fail("panel.companies must be a non-empty list")

    if rules.no_invoice_company not in rules.companies:
        return _fail(f"no_invoice_company {rules.no_invoice_company!r} is not in companies")

    missing_roles = [r for r in REQUIRED_ROLES if r not in rules.role_companies]
    if missing_roles:
        return _fail(f"roles missing: {missing_roles}")

    for role, companies in rules.role_companies.items():
        unknown = [c for c in companies if c not in rules.companies]
        if unknown:
            return _fail(f"role {role!r} names unknown companies: {unknown}")

    unknown_aliased = [c for c in rules.company_aliases if c not in rules.companies]
    if unknown_aliased:
        return _fail(f"company_aliases for unknown companies: {unknown_aliased}")

    for table in NAME_TABLES:
        if not rules.columns_for(table).get("name"):
            return _fail(f"columns.{table}.name must list at least one header")

    print("✅ Panel rulebook parsed")
    print(f"- Path: {path}")
    print(f"- Companies: {', '.join(rules.companies)}")
    print(f"- No-invoice company: {rules.no_invoice_company}")
    print(f"- Hard error tokens: {', '.join(rules.hard_error_tokens)}")
    for role, companies in rules.role_companies.items():
        print(f"- Role {role}: {', '.join(companies) or '(none)'}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
