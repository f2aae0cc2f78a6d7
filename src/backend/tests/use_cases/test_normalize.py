from __future__ import annotations

from decimal import Decimal

from src.backend.v1.use_cases.normalize import (
    company_key,
    norm_name,
    norm_token,
    parse_amount,
    parse_json_mapping,
    same_company,
    split_flags,
)


def test_norm_name_folds_case_accents_and_spaces() -> None:
    assert norm_name("  MARIA   Sílva ") == "maria silva"
    assert norm_name("José\tda  Conceição") == "jose da conceicao"
    assert norm_name(None) == ""


def test_norm_token_treats_spaces_and_hyphens_as_underscores() -> None:
    assert norm_token("sem rateio") == "SEM_RATEIO"
    assert norm_token("Sem-Salário-Mês") == "SEM_SALARIO_MES"


def test_company_key_and_same_company() -> None:
    assert company_key("T.Youth") == "TYouth"
    assert company_key(" T. Group ") == "TGroup"
    assert same_company("t.youth", "TYouth")
    assert not same_company("", "")
    assert not same_company("T.Brands", "T.Youth")


def test_parse_amount_pt_br_and_plain() -> None:
    assert parse_amount("R$ 1.234,56") == Decimal("1234.56")
    assert parse_amount("1234.56") == Decimal("1234.56")
    assert parse_amount("1.500") == Decimal("1500")
    assert parse_amount("2.500.000") == Decimal("2500000")
    assert parse_amount("1,5") == Decimal("1.5")
    assert parse_amount("(10,00)") == Decimal("-10.00")
    assert parse_amount(3500) == Decimal("3500")


def test_parse_amount_never_raises() -> None:
    assert parse_amount("") == Decimal("0")
    assert parse_amount(None) == Decimal("0")
    assert parse_amount("abc") == Decimal("0")
    assert parse_amount("R$ -") == Decimal("0")
    assert parse_amount(True) == Decimal("0")
    assert parse_amount(float("nan")) == Decimal("0")


def test_parse_json_mapping() -> None:
    assert parse_json_mapping('{"T.Youth": 1000}') == {"T.Youth": 1000}
    assert parse_json_mapping({"a": 1}) == {"a": 1}
    assert parse_json_mapping("[1, 2]") == {}
    assert parse_json_mapping("{broken") == {}
    assert parse_json_mapping(None) == {}


def test_split_flags() -> None:
    assert split_flags("SEM_NF, SEM_LINK; PDF ILEGIVEL | X/Y") == [
        "SEM_NF",
        "SEM_LINK",
        "PDF ILEGIVEL",
        "X",
        "Y",
    ]
    assert split_flags("  ") == []


def test_parse_amount_rejects_nested_json_values() -> None:
    assert parse_amount([100, 200]) == Decimal("0")
    assert parse_amount({"v": 1}) == Decimal("0")
    assert parse_amount(Decimal("12.50")) == Decimal("12.50")
