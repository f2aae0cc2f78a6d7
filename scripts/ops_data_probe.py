"""Probe: run the ops-data pipeline against the live spreadsheet as GC.

Checks that the service account can read the spreadsheet, lists what tabs
exist for the period, and prints the classification counts. Read-only.

Run:
  python scripts/ops_data_probe.py            # latest period with an AUDITORIA tab
  python scripts/ops_data_probe.py FEV-26

Required env vars:
  SPREADSHEET_ID, plus GOOGLE_SERVICE_ACCOUNT_JSON or GOOGLE_SA_FILE
Optional:
  APPS_SCRIPT_WEBAPP_URL, BOT_API_KEY  (otherwise the window is treated as closed)
"""

from __future__ import annotations

import asyncio
import os
import sys
from datetime import date

from dotenv import load_dotenv

# Allow running as: `python scripts/ops_data_probe.py`
_REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _REPO_ROOT not in sys.path:
    sys.path.insert(0, _REPO_ROOT)

load_dotenv(override=False)

from src.backend.v1.integrations.closing_bot_client import (  # noqa: E402
    ClosingBotClient,
    ClosingBotError,
)
from src.backend.v1.integrations.google_sheets_reader import (  # noqa: E402
    GoogleSheetsReader,
    SheetsReadError,
)
from src.backend.v1.use_cases.ops_report import build_ops_report, plan_ranges  # noqa: E402
from src.backend.v1.use_cases.panel_rules import PanelRules  # noqa: E402
from src.backend.v1.use_cases.rbac import ROLE_GC, companies_for_role  # noqa: E402
from src.backend.v1.use_cases.sheet_catalog import build_catalog  # noqa: E402


def _fail(msg: str, code: int = 1) -> int:
    print(f"ERROR: {msg}", file=sys.stderr)
    return code


def _window_open(period: str) -> bool:
    try:
        client = ClosingBotClient.from_env()
    except ValueError:
        print("- Closing bot: not configured (window closed)")
        return False
    try:
        status = asyncio.run(client.fetch_status())
    except ClosingBotError as e:
        print(f"- Closing bot: unavailable ({e})")
        return False
    is_open = bool(status and status.is_open_for(period, date.today()))
    print(f"- Closing bot: {status.to_dict() if status else None} -> open={is_open}")
    return is_open


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv

    try:
        reader = GoogleSheetsReader.from_env()
    except ValueError as e:
        return _fail(f"{e}. Export it or add it to your .env file.", code=3)

    try:
        titles = reader.list_sheet_titles()
    except (SheetsReadError, FileNotFoundError) as e:
        return _fail(str(e), code=2)

    catalog = build_catalog(titles)
    period = argv[0].strip().upper() if argv else catalog.latest_period
    if not period:
        return _fail(f"No AUDITORIA_ tabs found. Available sheets: {titles}")

    rules = PanelRules()
    allowed = companies_for_role(ROLE_GC, rules)
    plan = plan_ranges(period, titles, allowed, rules)

    print(f"✅ Spreadsheet readable: {reader.spreadsheet_id}")
    print(f"- Periods: {', '.join(catalog.periods) or '(none)'}")
    print(f"- Period: {period}")
    print(f"- Ranges: {plan.ranges}")

    try:
        values = reader.batch_get_rows(ranges=plan.ranges) if plan.ranges else {}
    except SheetsReadError as e:
        return _fail(str(e), code=2)

    report = build_ops_report(
        plan=plan,
        role=ROLE_GC,
        allowed_companies=allowed,
        sheet_values=values,
        window_open=_window_open(period),
        rules=rules,
    )

    print(f"- Policy exceptions: {report['policy']['count']}")
    print(f"- Audit counts: {report['audit']['counts']}")
    print(f"- Audit risk: {report['audit']['risk']}")
    print(f"- Finance counts: {report['finance']['counts']}")
    print(f"- Finance totals: {report['finance']['totals']}")
    print(f"- CLT: {report['clt']}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
