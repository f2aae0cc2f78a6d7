from __future__ import annotations

from decimal import Decimal

import pytest

from src.backend.v1.use_cases.compliance_classifier import (
    NOT_FOUND,
    ComplianceLevel,
    PayLevel,
    PolicyRule,
    classify_compliance,
    classify_payment,
    classify_rule_text,
    compliance_level,
    declared_companies,
    index_by_name,
    resolve_policy,
)

AUDIT_HEADER = [
    "Nome",
    "Competência",
    "Status",
    "Empresa",
    "NF(planilha)",
    "Link(planilha)",
    "Salário Mês",
    "Flags",
    "Esperado(json)",
]
FINANCE_HEADER = ["Nome", "Competência", "Valor Esperado", "NF(planilha)", "Link(planilha)"]
POLICY_HEADER = ["COLABORADOR", "REGRA", "MOTIVO"]


def _audit_row(
    name: str = "Maria Silva",
    *,
    nf: str = "NF-123",
    link: str = "https://drive.example/nf-123.pdf",
    salary: str = "5.000,00",
    flags: str = "",
    expected: str = '{"T.Brands": 5000}',
) -> list[str]:
    return [name, "FEV-26", "RECEBIDA", "T.Brands", nf, link, salary, flags, expected]


def _finance_row(name: str, *, amount: str = "3.000,00", nf: str = "NF-1", link: str = "L") -> list[str]:
    return [name, "FEV-26", amount, nf, link]


def _classify_one(row: list[str], *, policy=None, window_open: bool = True):
    records = classify_compliance([AUDIT_HEADER, row], policy or {}, window_open)
    assert len(records) == 1
    return records[0]


# ---------------------------------------------------------------------------
# Policy resolution
# ---------------------------------------------------------------------------


def test_classify_rule_text() -> None:
    assert classify_rule_text("Dispensada") is PolicyRule.WAIVED
    assert classify_rule_text("waived") is PolicyRule.WAIVED
    assert classify_rule_text("Opcional") is PolicyRule.OPTIONAL
    assert classify_rule_text("optional") is PolicyRule.OPTIONAL
    assert classify_rule_text("OBRIGATÓRIA") is PolicyRule.MANDATORY
    assert classify_rule_text("") is PolicyRule.MANDATORY
    assert classify_rule_text("???") is PolicyRule.MANDATORY


def test_resolve_policy_last_row_wins_and_skips_blank_names() -> None:
    rows = [
        POLICY_HEADER,
        ["Maria Silva", "Opcional", "first"],
        ["", "Dispensada", "no name"],
        ["  MARIA  SÍLVA ", "Dispensada", "Mora no exterior"],
        ["João Souza", "", ""],
    ]

    policy = resolve_policy(rows)

    assert set(policy) == {"maria silva", "joao souza"}
    assert policy["maria silva"].rule is PolicyRule.WAIVED
    assert policy["maria silva"].reason == "Mora no exterior"
    assert policy["joao souza"].rule is PolicyRule.MANDATORY


def test_resolve_policy_tolerates_empty_and_short_rows() -> None:
    assert resolve_policy([]) == {}
    assert resolve_policy([POLICY_HEADER]) == {}

    policy = resolve_policy([POLICY_HEADER, ["Ana"]])
    assert policy["ana"].rule is PolicyRule.MANDATORY
    assert policy["ana"].reason == ""


# ---------------------------------------------------------------------------
# Compliance
# ---------------------------------------------------------------------------


def test_scenario_a_documents_present_is_ok() -> None:
    rec = _classify_one(_audit_row())

    assert rec.policy_rule is PolicyRule.MANDATORY
    assert rec.level is ComplianceLevel.OK
    assert rec.risk == Decimal("0")
    assert rec.reason == ""


def test_scenario_b_missing_invoice_in_window_is_pending() -> None:
    rec = _classify_one(_audit_row(nf=""), window_open=True)

    assert rec.missing_invoice_number
    assert not rec.missing_invoice_link
    assert rec.level is ComplianceLevel.PENDING
    assert rec.risk == Decimal("5000.00")
    assert "no invoice number" in rec.reason


def test_scenario_c_missing_invoice_after_window_is_critical() -> None:
    rec = _classify_one(_audit_row(nf=""), window_open=False)

    assert rec.level is ComplianceLevel.CRITICAL
    assert rec.risk == Decimal("5000.00")


def test_scenario_d_no_invoice_company_defaults_to_optional() -> None:
    row = _audit_row(nf="", link="", expected='{"T.Youth": 3000}')
    rec = _classify_one(row, window_open=False)

    assert rec.companies == ("T.Youth",)
    assert rec.policy_rule is PolicyRule.OPTIONAL
    assert not rec.explicit_policy
    assert rec.level is ComplianceLevel.OK_OPTIONAL
    assert rec.risk == Decimal("0")

    payments = classify_payment(
        "T.Youth",
        [FINANCE_HEADER, _finance_row("Maria Silva", nf="", link="")],
        {},
        index_by_name([rec]),
        window_open=False,
    )
    assert len(payments) == 1
    assert payments[0].policy_rule is PolicyRule.OPTIONAL
    assert payments[0].pay_level is PayLevel.OK
    assert payments[0].compliance_level == "OK_OPTIONAL"
    assert payments[0].reason == "Invoice optional (T.Youth)"


def test_scenario_e_hard_error_flag_is_critical_even_in_window() -> None:
    rec = _classify_one(_audit_row(flags="SEM_RATEIO"), window_open=True)

    assert rec.hard_errors
    assert rec.level is ComplianceLevel.CRITICAL
    assert rec.reason.startswith("Structural error")


@pytest.mark.parametrize("window_open", [True, False])
@pytest.mark.parametrize("flags", ["sem rateio", "Sem-Salário-Mês", "SEM_NF; SEM_SALARIO_MES_2026"])
def test_hard_errors_ignore_window_and_spelling(flags: str, window_open: bool) -> None:
    rec = _classify_one(_audit_row(flags=flags), window_open=window_open)
    assert rec.level is ComplianceLevel.CRITICAL


def test_soft_flags_are_not_hard_errors() -> None:
    rec = _classify_one(_audit_row(flags="PDF_ILEGIVEL"))
    assert not rec.hard_errors
    assert rec.level is ComplianceLevel.OK


@pytest.mark.parametrize("window_open", [True, False])
def test_waived_takes_precedence_over_everything(window_open: bool) -> None:
    policy = resolve_policy([POLICY_HEADER, ["Maria Silva", "Dispensada", "Exterior"]])
    rec = _classify_one(
        _audit_row(nf="", link="", flags="SEM_RATEIO"), policy=policy, window_open=window_open
    )

    assert rec.level is ComplianceLevel.WAIVED
    assert rec.risk == Decimal("0")
    assert rec.reason == "Waived: Exterior"


def test_explicit_optional_policy_risk_is_zero_even_when_critical() -> None:
    policy = resolve_policy([POLICY_HEADER, ["Maria Silva", "Opcional", ""]])
    rec = _classify_one(_audit_row(nf="", flags="SEM_RATEIO"), policy=policy, window_open=False)

    assert rec.level is ComplianceLevel.CRITICAL
    assert rec.risk == Decimal("0")


def test_compliance_level_priority_table() -> None:
    assert (
        compliance_level(
            rule=PolicyRule.OPTIONAL, hard_errors=False, missing_document=True, window_open=True
        )
        is ComplianceLevel.OK_OPTIONAL
    )
    assert (
        compliance_level(
            rule=PolicyRule.OPTIONAL, hard_errors=False, missing_document=False, window_open=False
        )
        is ComplianceLevel.OK
    )
    assert (
        compliance_level(
            rule=PolicyRule.MANDATORY, hard_errors=True, missing_document=False, window_open=True
        )
        is ComplianceLevel.CRITICAL
    )


def test_declared_companies_and_primary_company() -> None:
    companies, primary = declared_companies(
        '{"T.Youth": 1000, "T.Brands": "3.000,00", "T.Dreams": 0}'
    )
    assert companies == ("T.Youth", "T.Brands")
    assert primary == "T.Brands"

    companies, primary = declared_companies('{"T.Youth": 1000, "T.Brands": 1000}')
    assert primary == "T.Youth"

    assert declared_companies("not json") == ((), "")


def test_multi_company_person_defaults_to_mandatory() -> None:
    row = _audit_row(nf="", expected='{"T.Youth": 1000, "T.Brands": 2000}')
    rec = _classify_one(row, window_open=True)

    assert rec.policy_rule is PolicyRule.MANDATORY
    assert rec.primary_company == "T.Brands"
    assert rec.level is ComplianceLevel.PENDING


def test_missing_columns_fall_back_to_blanks() -> None:
    records = classify_compliance([["Nome"], ["Ana"], [], ["  "]], {}, window_open=True)

    assert [r.name for r in records] == ["Ana"]
    rec = records[0]
    assert rec.companies == ()
    assert rec.primary_company == ""
    assert rec.monthly_salary == Decimal("0")
    assert rec.level is ComplianceLevel.PENDING
    assert rec.risk == Decimal("0")


def test_classification_is_idempotent() -> None:
    rows = [
        AUDIT_HEADER,
        _audit_row("Ana", nf=""),
        _audit_row("Bia", flags="SEM_RATEIO"),
        _audit_row("Caio", expected='{"T.Youth": 1}', link=""),
    ]
    policy = resolve_policy([POLICY_HEADER, ["Bia", "Dispensada", ""]])

    first = classify_compliance(rows, policy, False)
    second = classify_compliance(rows, policy, False)

    assert first == second
    assert [r.to_dict() for r in first] == [r.to_dict() for r in second]


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


def test_payment_levels_for_regular_company() -> None:
    audit = classify_compliance([AUDIT_HEADER, _audit_row("Ana")], {}, True)
    rows = [
        FINANCE_HEADER,
        _finance_row("Ana"),
        _finance_row("Bia", link=""),
        _finance_row("Caio", nf="", link=""),
    ]
    policy = resolve_policy([POLICY_HEADER, ["Caio", "Dispensada", "Contrato antigo"]])

    open_window = classify_payment("T.Brands", rows, policy, index_by_name(audit), True)
    closed_window = classify_payment("T.Brands", rows, policy, index_by_name(audit), False)

    assert [p.pay_level for p in open_window] == [PayLevel.OK, PayLevel.PENDING, PayLevel.OK]
    assert [p.pay_level for p in closed_window] == [PayLevel.OK, PayLevel.CRITICAL, PayLevel.OK]

    ana, bia, caio = open_window
    assert ana.compliance_level == "OK"
    assert bia.compliance_level == NOT_FOUND
    assert bia.reason == "no invoice link"
    assert caio.policy_rule is PolicyRule.WAIVED
    assert caio.reason == "Waived: Contrato antigo"
    assert ana.expected_amount == Decimal("3000.00")


def test_no_invoice_company_payment_is_always_ok() -> None:
    policy = resolve_policy([POLICY_HEADER, ["Ana", "Obrigatória", ""]])
    rows = [FINANCE_HEADER, _finance_row("Ana", nf="", link="")]

    payments = classify_payment("T.Youth", rows, policy, {}, window_open=False)

    assert payments[0].policy_rule is PolicyRule.MANDATORY
    assert payments[0].pay_level is PayLevel.OK
    assert payments[0].reason == "Invoice pending (GC); payment proceeds (T.Youth)"


def test_payment_compliance_link_does_not_change_pay_level() -> None:
    audit = classify_compliance([AUDIT_HEADER, _audit_row("Ana", flags="SEM_RATEIO")], {}, True)
    payments = classify_payment(
        "T.Brands", [FINANCE_HEADER, _finance_row("ana")], {}, index_by_name(audit), True
    )

    assert payments[0].compliance_level == "CRITICAL"
    assert payments[0].pay_level is PayLevel.OK


def test_record_to_dict_serializes_money_as_strings() -> None:
    rec = _classify_one(_audit_row(nf=""), window_open=True)
    data = rec.to_dict()

    assert data["compliance_level"] == "PENDING"
    assert data["policy_rule"] == "MANDATORY"
    assert data["risk"] == "5000.00"
    assert data["companies"] == ["T.Brands"]


def test_declared_companies_ignores_nested_amounts() -> None:
    assert declared_companies(
        '{"T.Brands": [100, 200], "T.Youth": {"v": 1}, "T.Dreams": 50}'
    ) == (("T.Dreams",), "T.Dreams")
