"""Cashback report export endpoints."""
import csv
from datetime import datetime, timezone
from io import BytesIO, StringIO
from typing import Any, Dict, List
from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment
from openpyxl.utils import get_column_letter
from starlette.concurrency import run_in_threadpool
from cashback.database import repositories
from cashback.services.cashback_service import get_cashback_stats

router = APIRouter()

LEDGER_COLUMNS = [
    ("ID", "id"),
    ("Wallet", "walletAddress"),
    ("Status", "status"),
    ("Total Sent", "totalAmountSent"),
    ("Cashback", "cashbackAmount"),
    ("Transactions", "transactionCount"),
    ("Eligible Since", "eligibilityDate"),
    ("Last Checked", "lastChecked"),
]

SUMMARY_ROWS = [
    ("Total Users", "totalUsers"),
    ("Active Users", "activeUsers"),
    ("Pending", "pendingUsers"),
    ("Approved", "approvedUsers"),
    ("Paid", "paidUsers"),
    ("Total Amount Sent", "totalAmountSent"),
    ("Total Cashback Owed", "totalCashbackOwed"),
    ("Average Cashback", "averageCashback"),
]


def generate_excel_report(users: List[Dict[str, Any]], stats: Dict[str, Any], generated_at: datetime) -> BytesIO:
    """
    Excel workbook with two sheets:
    1. Summary - ledger-wide cashback stats
    2. Eligible Users - one row per eligible wallet
    """
    wb = Workbook()
    if "Sheet" in wb.sheetnames:
        wb.remove(wb["Sheet"])

    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF")

    ws_summary = wb.create_sheet("Summary", 0)
    ws_summary.append(["Cashback Report"])
    ws_summary.append(["Generated At", generated_at.isoformat()])
    ws_summary.append([])
    ws_summary.append(["Metric", "Value"])
    for label, key in SUMMARY_ROWS:
        ws_summary.append([label, stats[key]])
    for cell in ws_summary[4]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center")

    ws_users = wb.create_sheet("Eligible Users", 1)
    ws_users.append([label for label, _ in LEDGER_COLUMNS])
    for cell in ws_users[1]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center")
    for user in users:
        ws_users.append([user.get(key) for _, key in LEDGER_COLUMNS])

    for column in ws_users.columns:
        max_length = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column)
        ws_users.column_dimensions[get_column_letter(column[0].column)].width = min(max_length + 2, 50)

    output = BytesIO()
    wb.save(output)
    output.seek(0)
    return output


def generate_csv_report(users: List[Dict[str, Any]]) -> StringIO:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow([label for label, _ in LEDGER_COLUMNS])
    for user in users:
        writer.writerow([user.get(key) for _, key in LEDGER_COLUMNS])
    output.seek(0)
    return output


@router.get("/cashback")
async def cashback_report(format: str = Query(default="json", description="json, csv or excel")):
    """Eligible-user ledger with cashback totals."""
    users = await run_in_threadpool(repositories.list_eligible_users)
    stats = get_cashback_stats(users)
    generated_at = datetime.now(timezone.utc)
    stamp = generated_at.strftime("%Y%m%d")

    fmt = format.lower()
    if fmt == "json":
        return {"generatedAt": generated_at.isoformat(), "summary": stats, "users": users}
    if fmt == "csv":
        return StreamingResponse(
            generate_csv_report(users),
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename=cashback-report-{stamp}.csv"},
        )
    if fmt == "excel":
        return StreamingResponse(
            generate_excel_report(users, stats, generated_at),
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": f"attachment; filename=cashback-report-{stamp}.xlsx"},
        )
    raise HTTPException(status_code=400, detail="Invalid format parameter")
