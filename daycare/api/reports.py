"""Reporting API endpoints: financial, enrollment and staffing."""

import logging
from datetime import date
from typing import Optional

import pandas as pd
from fastapi import APIRouter, Query

from daycare.api.dependencies import AdminUser, DbSession
from daycare.services.report_service import ReportService
from daycare.utils.excel import build_workbook, xlsx_response

router = APIRouter(prefix="/api/reports", tags=["reports"])
logger = logging.getLogger(__name__)


# === FINANCIAL ===

@router.get("/financial/revenue")
async def revenue_report(
    db: DbSession,
    admin: AdminUser,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    group_by: str = Query("month", description="day, week or month"),
):
    """Payments received, grouped by day, ISO week or month."""
    rows = await ReportService(db).revenue(start_date, end_date, group_by)
    return {"group_by": group_by, "periods": rows}


@router.get("/financial/outstanding")
async def outstanding_report(db: DbSession, admin: AdminUser):
    return await ReportService(db).outstanding()


@router.get("/financial/aging")
async def aging_report(db: DbSession, admin: AdminUser):
    """Open invoices bucketed by days past their due date."""
    return await ReportService(db).aging()


@router.get("/financial/payment-history")
async def payment_history_report(
    db: DbSession,
    admin: AdminUser,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    return await ReportService(db).payment_history(start_date, end_date)


@router.get("/financial/payment-history/export/excel")
async def export_payment_history(
    db: DbSession,
    admin: AdminUser,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    rows = await ReportService(db).payment_history(start_date, end_date)
    df = pd.DataFrame(
        [
            {
                "Date": row["payment_date"].isoformat(),
                "Parent": row["parent_name"],
                "Invoice": row["invoice_number"] or "",
                "Amount": float(row["amount"]),
                "Method": row["payment_method"] or "",
                "Reference": row["reference_number"] or "",
                "Recorded by": row["recorded_by"] or "",
            }
            for row in rows
        ],
        columns=["Date", "Parent", "Invoice", "Amount", "Method", "Reference", "Recorded by"],
    )
    output = build_workbook({"Payments": df})

    suffix = f"_{start_date}_{end_date}" if start_date and end_date else ""
    logger.info(f"Exported {len(rows)} payments to Excel")
    return xlsx_response(output, f"payments{suffix}.xlsx")


# === ENROLLMENT ===

@router.get("/enrollment/summary")
async def enrollment_summary(db: DbSession, admin: AdminUser):
    """Child counts and monthly rates by enrollment status."""
    return await ReportService(db).enrollment_summary()


@router.get("/enrollment/trends")
async def enrollment_trends(
    db: DbSession,
    admin: AdminUser,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    return await ReportService(db).enrollment_trends(start_date, end_date)


@router.get("/enrollment/waitlist")
async def enrollment_waitlist(db: DbSession, admin: AdminUser):
    """Waitlisted children in priority order with a parent contact."""
    return await ReportService(db).waitlist()


# === STAFFING ===

@router.get("/staffing/hours")
async def staffing_hours(
    db: DbSession,
    admin: AdminUser,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    return await ReportService(db).staffing_hours(start_date, end_date)


@router.get("/staffing/payroll")
async def staffing_payroll(
    db: DbSession,
    admin: AdminUser,
    pay_period_id: Optional[int] = None,
):
    return await ReportService(db).staffing_payroll(pay_period_id)


@router.get("/staffing/coverage")
async def staffing_coverage(
    db: DbSession,
    admin: AdminUser,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    """Scheduled educators and hours per day."""
    return await ReportService(db).staffing_coverage(start_date, end_date)
