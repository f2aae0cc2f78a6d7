from __future__ import annotations

import pytest

from src.backend.auth.auth_utils import get_authenticated_user_details
from src.backend.common.config.app_config import AppConfig, config


@pytest.fixture(autouse=True)
def _roles(monkeypatch):
    monkeypatch.setattr(config, "ALLOWED_DOMAIN", "agenciataj.com")
    monkeypatch.setattr(config, "ROLE_GC", ["ana@agenciataj.com"])
    monkeypatch.setattr(config, "ROLE_FIN_YOUTH", [])
    monkeypatch.setattr(config, "ROLE_FIN_CORE", ["ana@agenciataj.com", "bia@agenciataj.com"])


def test_reads_forwarded_email_and_resolves_role() -> None:
    user = get_authenticated_user_details({"X-Forwarded-Email": " Ana@AgenciaTaj.com "})

    assert user == {
        "user_principal_id": "ana@agenciataj.com",
        "email": "ana@agenciataj.com",
        "role": "finance_core",
    }


def test_falls_back_to_auth_request_header() -> None:
    user = get_authenticated_user_details({"x-auth-request-email": "carla@agenciataj.com"})
    assert user["email"] == "carla@agenciataj.com"
    assert user["role"] == "viewer"


def test_rejects_other_domains_and_missing_headers() -> None:
    assert get_authenticated_user_details({"X-Forwarded-Email": "ana@gmail.com"})["email"] == ""
    assert get_authenticated_user_details({})["role"] == ""


def test_app_config_splits_role_lists(monkeypatch) -> None:
    monkeypatch.setenv("ROLE_GC", "A@agenciataj.com, b@agenciataj.com,,")
    monkeypatch.setenv("ROLE_FIN_YOUTH", "")

    cfg = AppConfig()

    assert cfg.ROLE_GC == ["a@agenciataj.com", "b@agenciataj.com"]
    assert cfg.role_emails()["finance_youth"] == []
