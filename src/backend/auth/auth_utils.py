"""Caller identity from reverse-proxy headers.

Sign-in happens in front of the API (oauth2-proxy or similar); the proxy passes
the verified email along. This module only reads it and resolves the role.
"""

import logging
from typing import Any, Mapping

from src.backend.common.config.app_config import config
from src.backend.v1.use_cases.rbac import role_for_email

logger = logging.getLogger(__name__)

EMAIL_HEADERS = ("x-forwarded-email", "x-auth-request-email")


def _email_from_headers(request_headers: Mapping[str, Any]) -> str:
    normalized = {str(k).lower(): v for k, v in request_headers.items()}
    for name in EMAIL_HEADERS:
        value = str(normalized.get(name) or "").strip().lower()
        if value:
            return value
    return ""


def get_authenticated_user_details(request_headers: Mapping[str, Any]) -> dict[str, str]:
    """Return {user_principal_id, email, role}; empty values when there is no caller."""

    email = _email_from_headers(request_headers)
    domain = (config.ALLOWED_DOMAIN or "").strip().lower()

    if email and domain and not email.endswith("@" + domain):
        logger.warning("Rejected caller outside %s: %s", domain, email)
        email = ""

    if not email:
        return {"user_principal_id": "", "email": "", "role": ""}

    return {
        "user_principal_id": email,
        "email": email,
        "role": role_for_email(email, config.role_emails()),
    }
