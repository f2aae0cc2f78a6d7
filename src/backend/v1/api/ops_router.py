"""Ops Panel API Router.

Read-only endpoints behind the GC and Finance screens:
- /ops-data: compliance and pay levels for one period
- /meta: which periods and update tabs exist
- /audit-summary: traffic-light view of one AUDITORIA tab
- /updates: hires/raises/terminations with the amount to pay this month
"""

import logging
import re
from datetime import date as _date
from pathlib import Path
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from src.backend.auth.auth_utils import get_authenticated_user_details
from src.backend.common.config.app_config import config
from src.backend.v1.integrations.closing_bot_client import (
    ClosingBotClient,
    ClosingBotError,
    ClosingWindowStatus,
)
from src.backend.v1.integrations.google_sheets_reader import (
    GoogleSheetsReader,
    SheetsReadError,
    sheet_range,
)
from src.backend.v1.use_cases.audit_summary import summarize_audit_sheet
from src.backend.v1.use_cases.ops_report import build_ops_report, plan_ranges
from src.backend.v1.use_cases.panel_rules import PanelRules, PanelRulesError, load_panel_rules
from src.backend.v1.use_cases.payroll_updates import compute_updates
from src.backend.v1.use_cases.rbac import ROLE_GC, can_see_company, companies_for_role, selects_all
from src.backend.v1.use_cases.sheet_catalog import (
    audit_sheet_name,
    build_catalog,
    is_updates_sheet,
    pick_latest_update_sheet,
)

logger = logging.getLogger(__name__)

ops_router = APIRouter(tags=["Ops Panel"])

_PERIOD_RE = re.compile(r"^[A-Z0-9][A-Z0-9_-]*$")


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------


def _repo_root_from_this_file() -> Path:
    """Get repository root path from this file's location.

    ops_router.py is at: src/backend/v1/api/ops_router.py
    parents: api -> v1 -> backend -> src -> repo_root
    """
    return Path(__file__).resolve().parents[4]


def _today() -> _date:
    return _date.today()


def _require_user(request: Request) -> dict[str, str]:
    user = get_authenticated_user_details(request_headers=request.headers)
    if not user.get("email"):
        raise HTTPException(status_code=401, detail="unauthorized")
    return user


def _normalize_period(comp: str | None) -> str:
    period = (comp or config.DEFAULT_COMPETENCIA or "").strip().upper()
    if not _PERIOD_RE.match(period):
        raise HTTPException(status_code=400, detail=f"Invalid comp: {comp!r}")
    return period


def _load_rules() -> PanelRules:
    repo_root = _repo_root_from_this_file()
    path = (
        Path(config.PANEL_RULEBOOK_PATH)
        if config.PANEL_RULEBOOK_PATH
        else repo_root / "data" / "panel_rulebook.yaml"
    )
    if not path.is_absolute():
        path = (repo_root / path).resolve()

    try:
        return load_panel_rules(path)
    except PanelRulesError as e:
        logger.error("Failed to load panel rulebook %s: %s", path, e)
        raise HTTPException(status_code=500, detail=str(e))


def _reader() -> GoogleSheetsReader:
    try:
        return GoogleSheetsReader.from_env()
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e))


def _upstream_error(e: Exception) -> JSONResponse:
    return JSONResponse(status_code=502, content={"ok": False, "error": str(e)})


async def _load_closing_window() -> tuple[ClosingWindowStatus | None, list[str]]:
    """Fetch the closing window; failures degrade to 'closed' plus a warning."""

    try:
        client = ClosingBotClient.from_env()
    except ValueError as e:
        logger.info("Closing bot not configured: %s", e)
        return None, ["Closing bot not configured; window treated as closed"]

    try:
        return await client.fetch_status(), []
    except ClosingBotError as e:
        logger.warning("Closing bot unavailable: %s", e)
        return None, [f"Closing bot unavailable; window treated as closed ({e})"]


def _check_company_access(role: str, allowed: list[str], company: str) -> None:
    if not allowed:
        raise HTTPException(status_code=403, detail="forbidden")
    if role != ROLE_GC and not selects_all(company) and not can_see_company(allowed, company):
        raise HTTPException(status_code=403, detail="forbidden")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@ops_router.get("/ops-data")
async def ops_data(request: Request, comp: str | None = Query(default=None)):
    """Classify one period: policy, audit compliance, payments and CLT summary."""

    user = _require_user(request)
    period = _normalize_period(comp)
    rules = _load_rules()
    role = user["role"]
    allowed = companies_for_role(role, rules)
    reader = _reader()

    today = _today()
    status, warnings = await _load_closing_window()
    window_open = bool(status and status.is_open_for(period, today))
    days_left = status.days_left(period, today) if status else None

    try:
        titles = await run_in_threadpool(reader.list_sheet_titles)
        plan = plan_ranges(period, titles, allowed, rules)
        ranges = plan.ranges
        values = await run_in_threadpool(reader.batch_get_rows, ranges=ranges) if ranges else {}
    except SheetsReadError as e:
        return _upstream_error(e)
    except FileNotFoundError as e:
        raise HTTPException(status_code=500, detail=str(e))

    if not ranges:
        warnings.append(f"No sheets found for {period} yet")

    report = build_ops_report(
        plan=plan,
        role=role,
        allowed_companies=allowed,
        sheet_values=values,
        window_open=window_open,
        rules=rules,
    )

    return {
        "ok": True,
        "comp": period,
        "closing": status.to_dict() if status else None,
        "in_window": window_open,
        "days_left": days_left,
        "allowed_companies": allowed,
        **report,
        "warnings": warnings,
    }


@ops_router.get("/meta")
async def meta(request: Request):
    """List the periods, finance tabs and update tabs present in the spreadsheet."""

    _require_user(request)
    reader = _reader()
    try:
        titles = await run_in_threadpool(reader.list_sheet_titles)
    except SheetsReadError as e:
        return _upstream_error(e)
    except FileNotFoundError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return {"ok": True, **build_catalog(titles).to_dict()}


@ops_router.get("/audit-summary")
async def audit_summary(
    request: Request,
    comp: str | None = Query(default=None),
    company: str = Query(default=""),
):
    user = _require_user(request)
    period = _normalize_period(comp)
    rules = _load_rules()
    role = user["role"]
    allowed = companies_for_role(role, rules)
    company = company.strip()
    _check_company_access(role, allowed, company)

    reader = _reader()
    sheet = audit_sheet_name(period)
    try:
        titles = await run_in_threadpool(reader.list_sheet_titles)
        rows: list[list[str]] = []
        if sheet in titles:
            rows = await run_in_threadpool(reader.fetch_rows, a1_range=sheet_range(sheet))
    except SheetsReadError as e:
        return _upstream_error(e)
    except FileNotFoundError as e:
        raise HTTPException(status_code=500, detail=str(e))

    summary = summarize_audit_sheet(
        rows,
        company,
        rules,
        visible_companies=None if role == ROLE_GC else allowed,
    )

    payload: dict[str, Any] = {"ok": True, "comp": period, "company": company, **summary.to_dict()}
    if len(rows) < 2:
        payload["hint"] = f"{sheet} is empty or missing"
    return payload


@ops_router.get("/updates")
async def updates(
    request: Request,
    sheet: str = Query(default=""),
    company: str = Query(default=""),
    action: str = Query(default=""),
):
    """Update rows with 'pay this month'; defaults to the latest update tab."""

    user = _require_user(request)
    rules = _load_rules()
    role = user["role"]
    allowed = companies_for_role(role, rules)
    company = company.strip()
    _check_company_access(role, allowed, company)

    reader = _reader()
    try:
        titles = await run_in_threadpool(reader.list_sheet_titles)
        update_sheets = [t for t in titles if is_updates_sheet(t)]
        selected = sheet.strip() or pick_latest_update_sheet(update_sheets)
        if selected and selected not in update_sheets:
            raise HTTPException(status_code=404, detail=f"Update sheet not found: {selected}")
        rows: list[list[str]] = []
        if selected:
            rows = await run_in_threadpool(reader.fetch_rows, a1_range=sheet_range(selected))
    except SheetsReadError as e:
        return _upstream_error(e)
    except FileNotFoundError as e:
        raise HTTPException(status_code=500, detail=str(e))

    report = compute_updates(
        rows,
        company,
        action,
        rules,
        visible_companies=None if role == ROLE_GC else allowed,
    )

    return {
        "ok": True,
        "sheet": selected,
        "sheets": sorted(update_sheets),
        "company": company,
        "action": action.strip(),
        **report.to_dict(),
    }
