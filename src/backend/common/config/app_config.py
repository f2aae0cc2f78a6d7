"""Application configuration read from the environment.

Values come from the process environment, `.env`, or `.env.example` (local
runs). Business constants live in `data/panel_rulebook.yaml` instead.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Convenience: allow local runs with only `.env.example` filled.
if not os.environ.get("SPREADSHEET_ID"):
    load_dotenv(dotenv_path=os.path.abspath(".env.example"), override=False)


def _split_emails(raw: str) -> list[str]:
    return [e.strip().lower() for e in (raw or "").split(",") if e.strip()]


class AppConfig:
    """Environment-backed settings for the panel backend."""

    def __init__(self):
        # Google Sheets
        self.SPREADSHEET_ID = self._get_optional("SPREADSHEET_ID")

        # Identity
        self.ALLOWED_DOMAIN = self._get_optional("ALLOWED_DOMAIN", "agenciataj.com")
        self.ROLE_GC = _split_emails(self._get_optional("ROLE_GC"))
        self.ROLE_FIN_YOUTH = _split_emails(self._get_optional("ROLE_FIN_YOUTH"))
        self.ROLE_FIN_CORE = _split_emails(self._get_optional("ROLE_FIN_CORE"))

        # Panel
        self.DEFAULT_COMPETENCIA = self._get_optional("DEFAULT_COMPETENCIA", "FEV-26")
        self.PANEL_RULEBOOK_PATH = self._get_optional("PANEL_RULEBOOK_PATH")
        self.FRONTEND_SITE_NAME = self._get_optional(
            "FRONTEND_SITE_NAME", "http://127.0.0.1:3000"
        )

        # Logging
        self.BASIC_LOGGING_LEVEL = self._get_optional("BASIC_LOGGING_LEVEL", "INFO")
        self.PACKAGE_LOGGING_LEVEL = self._get_optional("PACKAGE_LOGGING_LEVEL", "WARNING")
        self.LOGGING_PACKAGES = self._get_optional(
            "LOGGING_PACKAGES", "googleapiclient,google_auth_httplib2,httpx,httpcore"
        )

    def _get_optional(self, name: str, default: str = "") -> str:
        return os.environ.get(name, default)

    def role_emails(self) -> dict[str, list[str]]:
        """Role -> member emails, in the shape `rbac.role_for_email` expects."""
        return {
            "gc": self.ROLE_GC,
            "finance_youth": self.ROLE_FIN_YOUTH,
            "finance_core": self.ROLE_FIN_CORE,
        }


# Create a global instance of AppConfig
config = AppConfig()
