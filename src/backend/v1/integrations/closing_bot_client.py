"""Closing-window status client.

The PJ closing bot runs as an Apps Script web app. It owns the closing window
(start/stop/run are driven from its own console); the panel only reads the
window status to decide whether missing invoices are still "pending".

Request shape: POST {"key": <BOT_API_KEY>, "action": "status"}
Response shape: {"status": {"active": bool, "competencia": "FEV-26",
                            "endDate": "YYYY-MM-DD", "triggers": [...]}}
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date
from typing import Any

import httpx
from dotenv import load_dotenv

load_dotenv(override=False)

logger = logging.getLogger(__name__)


class ClosingBotError(RuntimeError):
    """The closing bot web app could not be reached or returned garbage."""


@dataclass(frozen=True, slots=True)
class ClosingWindowStatus:
    active: bool
    period: str
    end_date: str
    triggers: tuple[dict[str, Any], ...] = ()

    @classmethod
    def from_payload(cls, data: Any) -> "ClosingWindowStatus | None":
        status = data.get("status") if isinstance(data, dict) else None
        if not isinstance(status, dict):
            return None
        triggers = status.get("triggers")
        return cls(
            active=bool(status.get("active")),
            period=str(status.get("competencia") or "").strip(),
            end_date=str(status.get("endDate") or "").strip(),
            triggers=tuple(t for t in triggers if isinstance(t, dict))
            if isinstance(triggers, list)
            else (),
        )

    @property
    def end(self) -> date | None:
        try:
            return date.fromisoformat(self.end_date)
        except ValueError:
            return None

    def _applies_to(self, period: str) -> bool:
        return (
            self.active
            and self.end is not None
            and self.period.upper() == period.strip().upper()
        )

    def is_open_for(self, period: str, today: date) -> bool:
        """active && same period && today <= end date (end date inclusive)."""

        end = self.end
        return self._applies_to(period) and end is not None and today <= end

    def days_left(self, period: str, today: date) -> int | None:
        """Days remaining including today; 0 once past; None if no window applies."""

        end = self.end
        if not self._applies_to(period) or end is None:
            return None
        if today > end:
            return 0
        return (end - today).days + 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "active": self.active,
            "competencia": self.period,
            "endDate": self.end_date,
            "triggers": list(self.triggers),
        }


class ClosingBotClient:
    def __init__(
        self,
        *,
        url: str,
        api_key: str,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    @classmethod
    def from_env(cls) -> "ClosingBotClient":
        url = os.environ.get("APPS_SCRIPT_WEBAPP_URL")
        api_key = os.environ.get("BOT_API_KEY")
        if not url or not api_key:
            raise ValueError("Missing APPS_SCRIPT_WEBAPP_URL or BOT_API_KEY")

        timeout_seconds = float(os.environ.get("BOT_HTTP_TIMEOUT_SECONDS", "15"))
        return cls(url=url, api_key=api_key, timeout_seconds=timeout_seconds)

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        body = {"key": self._api_key, **payload}
        try:
            # Apps Script answers POSTs with a redirect to the content host.
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                resp = await client.post(self._url, json=body)
        except httpx.HTTPError as e:
            raise ClosingBotError(f"Closing bot unreachable: {e}") from e

        if resp.status_code >= 400:
            raise ClosingBotError(f"HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            data = resp.json()
        except ValueError as e:
            raise ClosingBotError("Closing bot returned a non-JSON response") from e

        return data if isinstance(data, dict) else {}

    async def fetch_status(self) -> ClosingWindowStatus | None:
        data = await self._post({"action": "status"})
        status = ClosingWindowStatus.from_payload(data)
        logger.debug("Closing window status: %s", status)
        return status
