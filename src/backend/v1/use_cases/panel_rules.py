"""Business constants for the GC + Finance panel.

The rule tables in `compliance_classifier` never hardcode company names or
flag vocabularies; they receive a `PanelRules` instance. Defaults below mirror
`data/panel_rulebook.yaml`, which is the file the API loads per request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

DEFAULT_COMPANIES: tuple[str, ...] = (
    "T.Youth",
    "T.Brands",
    "T.Dreams",
    "T.Venues",
    "T.Group",
)

# Payments for this company are never blocked by missing invoices.
DEFAULT_NO_INVOICE_COMPANY = "T.Youth"

# Structural failures that force CRITICAL regardless of window or policy.
DEFAULT_HARD_ERROR_TOKENS: tuple[str, ...] = ("SEM_RATEIO", "SEM_SALARIO_MES")

DEFAULT_AUDIT_SUMMARY_CRITICAL_TOKENS: tuple[str, ...] = (
    "SEM_LINK",
    "SEM_NF",
    "CNPJ_INVALIDO",
    "PDF_ILEGIVEL",
    "DIVERGENCIA_VALOR",
    "VALOR_DIVERGENTE",
    "SEM_RATEIO",
    "SEM_SALARIO_MES",
)

DEFAULT_ROLE_COMPANIES: dict[str, tuple[str, ...]] = {
    "gc": DEFAULT_COMPANIES,
    "finance_youth": ("T.Youth",),
    "finance_core": ("T.Brands", "T.Dreams", "T.Venues", "T.Group"),
    "viewer": (),
}

DEFAULT_COMPANY_ALIASES: dict[str, tuple[str, ...]] = {
    "T.Youth": ("TYOUTH", "TOY", "FORMATURAS", "NEO", "MED"),
    "T.Brands": ("TBRANDS", "TAJ BRANDS", "BRANDS", "CONSULTORIA"),
    "T.Dreams": ("TDREAMS", "DREAMS", "MIRANTE", "PEOPLE"),
    "T.Venues": ("TVENUES", "VENUES", "T VENUES"),
    "T.Group": ("TGROUP", "HOLDING", "THOLDING", "GRUPO T"),
}

# Priority-ordered header spellings per logical column. Matching ignores case,
# accents, spaces and punctuation, so "NF (planilha)" == "NF(planilha)".
DEFAULT_COLUMNS: dict[str, dict[str, tuple[str, ...]]] = {
    "policy": {
        "name": ("COLABORADOR", "Nome", "Name"),
        "rule": ("REGRA", "Regra NF", "Rule"),
        "reason": ("MOTIVO", "Justificativa", "Reason"),
        "company": ("EMPRESA", "Company"),
    },
    "audit": {
        "name": ("Nome", "COLABORADOR", "Name"),
        "period": ("Competência", "Period"),
        "status": ("Status",),
        "company": ("Empresa", "Company"),
        "invoice_number": ("NF(planilha)", "NF", "NFS-e", "Nota Fiscal"),
        "invoice_link": ("Link(planilha)", "Link", "Link NF"),
        "monthly_salary": ("Salário Mês", "Salário"),
        "flags": ("Flags",),
        "expected": ("Esperado(json)", "Esperado", "Expected(json)"),
    },
    "finance": {
        "name": ("Nome", "COLABORADOR", "Name"),
        "period": ("Competência", "Period"),
        "expected_amount": ("Valor Esperado", "Valor", "Expected Amount"),
        "invoice_number": ("NF(planilha)", "NF", "NFS-e"),
        "invoice_link": ("Link(planilha)", "Link"),
    },
    "updates": {
        "contract": ("CONTRATO",),
        "name": ("COLABORADOR", "NOME"),
        "company": ("EMPRESA",),
        "area": ("ÁREA",),
        "action": ("AÇÃO",),
        "date": ("DATA CONTRATAÇÃO", "DATA", "DATA ADMISSÃO"),
        "current_salary": ("SALÁRIO ATUAL",),
        "das": ("DAS - R$ 50", "DAS", "DAS R$ 50"),
        "prorated_salary": ("SALÁRIO PROP",),
        "adjusted_salary": ("SALÁRIO REAJUSTADO",),
        "salary_plus_das": (
            "SOMA SALÁRIO TOTAL + DAS (SEM DAS TOY FORMA)",
            "SOMA SALÁRIO TOTAL + DAS",
            "SOMA",
        ),
        "termination_total": (
            "VALOR TOTAL DA RESCISÃO (SALÁRIO + SALDO FÉRIAS)",
            "VALOR TOTAL DA RESCISÃO",
            "RESCISÃO",
        ),
        "reference_month": ("MÊS DE REF",),
        "notes": ("OBSERVAÇÕES:", "OBSERVAÇÕES", "OBS"),
    },
}


class PanelRulesError(ValueError):
    """Raised when the panel rulebook file is missing or malformed."""


@dataclass(frozen=True, slots=True)
class PanelRules:
    companies: tuple[str, ...] = DEFAULT_COMPANIES
    no_invoice_company: str = DEFAULT_NO_INVOICE_COMPANY
    hard_error_tokens: tuple[str, ...] = DEFAULT_HARD_ERROR_TOKENS
    audit_summary_critical_tokens: tuple[str, ...] = DEFAULT_AUDIT_SUMMARY_CRITICAL_TOKENS
    role_companies: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_ROLE_COMPANIES)
    )
    company_aliases: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_COMPANY_ALIASES)
    )
    columns: Mapping[str, Mapping[str, tuple[str, ...]]] = field(
        default_factory=lambda: {k: dict(v) for k, v in DEFAULT_COLUMNS.items()}
    )

    def columns_for(self, table: str) -> Mapping[str, tuple[str, ...]]:
        return self.columns.get(table) or DEFAULT_COLUMNS.get(table) or {}


def _str_tuple(value: Any, default: tuple[str, ...]) -> tuple[str, ...]:
    if not isinstance(value, list):
        return default
    return tuple(str(v).strip() for v in value if isinstance(v, (str, int)) and str(v).strip())


def _tuple_mapping(
    value: Any, default: Mapping[str, tuple[str, ...]]
) -> dict[str, tuple[str, ...]]:
    out = dict(default)
    if not isinstance(value, dict):
        return out
    for k, v in value.items():
        if isinstance(k, str) and k.strip():
            out[k.strip()] = _str_tuple(v, ())
    return out


def panel_rules_from_dict(doc: Mapping[str, Any]) -> PanelRules:
    """Build PanelRules from the `panel:` section; missing keys keep defaults."""

    columns: dict[str, dict[str, tuple[str, ...]]] = {
        k: dict(v) for k, v in DEFAULT_COLUMNS.items()
    }
    raw_columns = doc.get("columns")
    if isinstance(raw_columns, dict):
        for table, fields in raw_columns.items():
            if not isinstance(table, str):
                continue
            columns[table] = _tuple_mapping(fields, columns.get(table, {}))

    no_invoice = doc.get("no_invoice_company")
    return PanelRules(
        companies=_str_tuple(doc.get("companies"), DEFAULT_COMPANIES),
        no_invoice_company=(
            str(no_invoice).strip() if isinstance(no_invoice, str) else DEFAULT_NO_INVOICE_COMPANY
        ),
        hard_error_tokens=_str_tuple(doc.get("hard_error_tokens"), DEFAULT_HARD_ERROR_TOKENS),
        audit_summary_critical_tokens=_str_tuple(
            doc.get("audit_summary_critical_tokens"), DEFAULT_AUDIT_SUMMARY_CRITICAL_TOKENS
        ),
        role_companies=_tuple_mapping(doc.get("roles"), DEFAULT_ROLE_COMPANIES),
        company_aliases=_tuple_mapping(doc.get("company_aliases"), DEFAULT_COMPANY_ALIASES),
        columns=columns,
    )


def load_panel_rules(path: Path) -> PanelRules:
    """Load and parse the panel rulebook YAML file."""

    if not path.exists():
        raise PanelRulesError(f"Panel rulebook not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            doc = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise PanelRulesError(f"Invalid panel rulebook YAML: {e}") from e

    if not isinstance(doc, dict):
        raise PanelRulesError("Panel rulebook YAML must parse to a mapping")

    panel = doc.get("panel")
    if panel is None:
        raise PanelRulesError("Missing top-level key: panel")
    if not isinstance(panel, dict):
        raise PanelRulesError("panel must be a mapping")
    return panel_rules_from_dict(panel)
