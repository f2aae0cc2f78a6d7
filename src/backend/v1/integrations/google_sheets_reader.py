"""Google Sheets reader (service-account based).

Goals
- Provide a small, testable integration wrapper around the Sheets API.
- Keep all network calls here; keep header resolution deterministic and unit-testable.

This intentionally does not depend on FastAPI.
"""

from __future__ import annotations

import json
import logging
import os
import re
import unicodedata
from typing import Any, Mapping, Sequence

from dotenv import load_dotenv

load_dotenv()

# Convenience: allow local runs with only `.env.example` filled.
if not os.environ.get("SPREADSHEET_ID"):
    load_dotenv(dotenv_path=os.path.abspath(".env.example"), override=False)

logger = logging.getLogger(__name__)


class SheetsReadError(RuntimeError):
    """The Sheets API could not be reached or rejected a read."""


def _norm(s: Any) -> str:
    text = unicodedata.normalize("NFD", str(s or ""))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return re.sub(r"[^0-9a-z]", "", text.lower())


def _col_to_a1(col_index_zero_based: int) -> str:
    """Convert 0-based column index to A1 column letters (0->A, 25->Z, 26->AA)."""

    if col_index_zero_based < 0:
        raise ValueError("col_index_zero_based must be >= 0")

    result = ""
    n = col_index_zero_based
    while True:
        n, rem = divmod(n, 26)
        result = chr(ord("A") + rem) + result
        if n == 0:
            break
        n -= 1

    return result


def sheet_range(title: str, *, last_col_index: int = 25) -> str:
    """Whole-column A1 range for a sheet title, quoted ("'FIN_TYouth_FEV-26'!A:Z")."""

    safe = title.replace("'", "''")
    return f"'{safe}'!A:{_col_to_a1(last_col_index)}"


def sheet_title_from_range(a1_range: str) -> str:
    """Inverse of `sheet_range` for ranges echoed back by the API."""

    head, sep, _ = a1_range.rpartition("!")
    title = head if sep else a1_range
    if len(title) >= 2 and title.startswith("'") and title.endswith("'"):
        title = title[1:-1].replace("''", "'")
    return title


def resolve_column_index(header: Sequence[Any], synonyms: Sequence[str]) -> int | None:
    """Return the index of the first synonym present in `header`.

    `synonyms` is priority-ordered: "NF(planilha)" wins over a bare "NF" column
    when both exist. Comparison ignores case, accents, spaces and punctuation.
    """

    normalized = [_norm(h) for h in header]
    for candidate in synonyms:
        needle = _norm(candidate)
        if not needle:
            continue
        for j, h in enumerate(normalized):
            if h == needle:
                return j
    return None


def resolve_columns(
    header: Sequence[Any], columns: Mapping[str, Sequence[str]]
) -> dict[str, int | None]:
    return {field: resolve_column_index(header, synonyms) for field, synonyms in columns.items()}


def rows_to_records(
    rows: Sequence[Sequence[Any]],
    columns: Mapping[str, Sequence[str]],
) -> list[dict[str, Any]]:
    """Turn sheet rows (first row = header) into dicts keyed by logical field.

    Every field in `columns` is present in every record; a column missing from
    the header, a short row, or a None cell all yield "".
    """

    if not rows or len(rows) < 2:
        return []

    indexes = resolve_columns(rows[0] or [], columns)
    out: list[dict[str, Any]] = []
    for r in rows[1:]:
        r = r or []
        record: dict[str, Any] = {}
        for field, idx in indexes.items():
            value = r[idx] if idx is not None and idx < len(r) else None
            record[field] = "" if value is None else value
        out.append(record)
    return out


class GoogleSheetsReader:
    def __init__(
        self,
        *,
        spreadsheet_id: str,
        service_account_path: str | None = None,
        service_account_info: dict[str, Any] | None = None,
        timeout_seconds: int = 30,
    ) -> None:
        self._spreadsheet_id = spreadsheet_id
        self._service_account_path = (
            os.path.expanduser(service_account_path) if service_account_path else None
        )
        self._service_account_info = service_account_info
        self._timeout_seconds = timeout_seconds

    @classmethod
    def from_env(cls) -> "GoogleSheetsReader":
        spreadsheet_id = os.environ.get("SPREADSHEET_ID")
        if not spreadsheet_id:
            raise ValueError("Missing SPREADSHEET_ID")

        # Hosted deployments pass the key inline; local runs point at a file.
        service_account_info: dict[str, Any] | None = None
        raw = os.environ.get("GOOGLE_SERVICE_ACCOUNT_JSON")
        if raw:
            try:
                service_account_info = json.loads(raw)
            except ValueError as e:
                raise ValueError("GOOGLE_SERVICE_ACCOUNT_JSON is not valid JSON") from e

        service_account_path = os.environ.get("GOOGLE_SA_FILE") or os.path.expanduser(
            "~/.config/gc-panel/service-account.json"
        )
        timeout_seconds = int(os.environ.get("GOOGLE_HTTP_TIMEOUT_SECONDS", "30"))

        return cls(
            spreadsheet_id=spreadsheet_id,
            service_account_path=service_account_path,
            service_account_info=service_account_info,
            timeout_seconds=timeout_seconds,
        )

    def _load_service_account_info(self) -> dict[str, Any]:
        if self._service_account_info is not None:
            return self._service_account_info
        if not self._service_account_path or not os.path.exists(self._service_account_path):
            raise FileNotFoundError(
                f"Service account file not found: {self._service_account_path}"
            )
        with open(self._service_account_path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _build_sheets_service(self) -> Any:
        # Lazy import so unit tests that only use the deterministic helpers
        # do not require Google client libs.
        import google_auth_httplib2
        import httplib2
        from google.oauth2 import service_account
        from googleapiclient.discovery import build

        creds = service_account.Credentials.from_service_account_info(
            self._load_service_account_info(),
            scopes=["https://www.googleapis.com/auth/spreadsheets.readonly"],
        )
        http = google_auth_httplib2.AuthorizedHttp(
            creds, http=httplib2.Http(timeout=self._timeout_seconds)
        )

        return build("sheets", "v4", http=http, cache_discovery=False)

    def _execute(self, request: Any, *, what: str) -> dict[str, Any]:
        from google.auth.exceptions import GoogleAuthError
        from googleapiclient.errors import HttpError
        from httplib2 import HttpLib2Error

        try:
            resp = request.execute(num_retries=2)
        except (HttpError, HttpLib2Error, GoogleAuthError, OSError) as e:
            logger.warning("Google Sheets %s failed for %s: %s", what, self._spreadsheet_id, e)
            raise SheetsReadError(f"Google Sheets {what} failed: {e}") from e
        return resp if isinstance(resp, dict) else {}

    @property
    def spreadsheet_id(self) -> str:
        return self._spreadsheet_id

    def list_sheet_titles(self) -> list[str]:
        sheets = self._build_sheets_service()
        meta = self._execute(
            sheets.spreadsheets().get(
                spreadsheetId=self._spreadsheet_id, fields="sheets(properties(title))"
            ),
            what="metadata read",
        )
        return [
            s["properties"]["title"]
            for s in meta.get("sheets", [])
            if (s.get("properties") or {}).get("title")
        ]

    def fetch_rows(self, *, a1_range: str) -> list[list[str]]:
        sheets = self._build_sheets_service()
        resp = self._execute(
            sheets.spreadsheets()
            .values()
            .get(spreadsheetId=self._spreadsheet_id, range=a1_range),
            what=f"read of {a1_range}",
        )
        rows = resp.get("values", [])
        return rows if isinstance(rows, list) else []

    def batch_get_rows(self, *, ranges: list[str]) -> dict[str, list[list[str]]]:
        """Read many ranges in one call; returns sheet title -> rows.

        Callers should only pass ranges of sheets that exist: a single unknown
        sheet makes the whole batch fail.
        """

        if not ranges:
            return {}

        sheets = self._build_sheets_service()
        resp = self._execute(
            sheets.spreadsheets()
            .values()
            .batchGet(
                spreadsheetId=self._spreadsheet_id,
                ranges=ranges,
                majorDimension="ROWS",
            ),
            what="batch read",
        )

        out: dict[str, list[list[str]]] = {}
        for vr in resp.get("valueRanges") or []:
            title = sheet_title_from_range(str(vr.get("range") or ""))
            rows = vr.get("values") or []
            out[title] = rows if isinstance(rows, list) else []
        return out
