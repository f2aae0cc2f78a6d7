from __future__ import annotations

from src.backend.v1.use_cases.audit_summary import CRIT, OK, WARN, grade_row, summarize_audit_sheet

HEADER = ["Nome", "Empresa", "NF(planilha)", "Link(planilha)", "Flags"]
TOKENS = ("SEM_LINK", "SEM_NF", "CNPJ_INVALIDO", "SEM_RATEIO")


def test_grade_row() -> None:
    assert grade_row([], invoice_number="1", invoice_link="L", critical_tokens=TOKENS) == OK
    assert grade_row(["ATRASO"], invoice_number="1", invoice_link="L", critical_tokens=TOKENS) == WARN
    assert grade_row(["CNPJ INVALIDO"], invoice_number="1", invoice_link="L", critical_tokens=TOKENS) == CRIT
    assert grade_row([], invoice_number="", invoice_link="L", critical_tokens=TOKENS) == CRIT


def test_summarize_audit_sheet_totals_and_breakdown() -> None:
    rows = [
        HEADER,
        ["Ana", "TOY - Formaturas", "1", "L", ""],
        ["Bia", "T.Brands", "2", "L", "ATRASO"],
        ["Caio", "Mirante", "", "", "ATRASO, CNPJ_INVALIDO"],
        ["Duda", "Holding", "4", "", ""],
    ]

    summary = summarize_audit_sheet(rows)

    assert (summary.total, summary.ok, summary.warn, summary.crit) == (4, 1, 1, 2)
    assert summary.semaphore == "red"
    breakdown = dict(summary.breakdown)
    assert breakdown == {"ATRASO": 2, "CNPJ_INVALIDO": 1, "SEM_LINK": 2, "SEM_NF": 1}
    assert summary.breakdown[0] in (("ATRASO", 2), ("SEM_LINK", 2))
    assert [r.name for r in summary.top_critical] == ["Caio", "Duda"]
    assert summary.top_critical[0].reason == "no invoice / no link / ATRASO, CNPJ_INVALIDO"
    assert summary.top_critical[1].reason == "no link"


def test_summarize_audit_sheet_company_filter() -> None:
    rows = [
        HEADER,
        ["Ana", "TOY - Formaturas", "1", "L", ""],
        ["Bia", "T.Brands", "2", "L", "ATRASO"],
    ]

    youth = summarize_audit_sheet(rows, "T.Youth")
    assert (youth.total, youth.ok) == (1, 1)
    assert youth.semaphore == "green"

    brands = summarize_audit_sheet(rows, "T.Brands")
    assert brands.semaphore == "yellow"

    core_only = summarize_audit_sheet(rows, visible_companies=["T.Brands", "T.Dreams"])
    assert core_only.total == 1

    nobody = summarize_audit_sheet(rows, visible_companies=[])
    assert nobody.total == 0


def test_summarize_audit_sheet_limits_lists() -> None:
    rows = [HEADER] + [[f"P{i}", "T.Brands", "", "", f"FLAG_{i}"] for i in range(20)]

    summary = summarize_audit_sheet(rows)

    assert summary.crit == 20
    assert len(summary.top_critical) == 12
    assert len(summary.breakdown) == 10
    assert summary.breakdown[0] == ("SEM_LINK", 20)
    assert summary.to_dict()["semaphore"] == "red"


def test_summarize_empty_sheet() -> None:
    summary = summarize_audit_sheet([])
    assert summary.total == 0
    assert summary.semaphore == "green"
    assert summary.to_dict()["breakdown"] == []


def test_summarize_audit_sheet_todas_keeps_visible_restriction() -> None:
    rows = [
        HEADER,
        ["Ana", "TOY - Formaturas", "1", "L", ""],
        ["Bia", "T.Brands", "2", "L", "ATRASO"],
    ]

    youth = summarize_audit_sheet(rows, "TODAS", visible_companies=["T.Youth"])
    assert (youth.total, youth.ok) == (1, 1)

    assert summarize_audit_sheet(rows, "TODAS").total == 2
