"""Pay period API endpoints: generation, close preview, closing and export."""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

import pandas as pd
from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from daycare.api.dependencies import AdminUser, DbSession
from daycare.models import PayFrequency, PaymentType, PayPeriodStatus
from daycare.services.payroll_service import ZERO, PayrollService
from daycare.utils.excel import build_workbook, xlsx_response

router = APIRouter(prefix="/api/pay-periods", tags=["pay-periods"])
logger = logging.getLogger(__name__)


class PayPeriodCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    start_date: date
    end_date: date
    frequency: Optional[PayFrequency] = None


class PayPeriodGenerateRequest(BaseModel):
    frequency: PayFrequency
    start_date: date


class PayPeriodResponse(BaseModel):
    id: int
    name: str
    start_date: date
    end_date: date
    frequency: Optional[PayFrequency] = None
    status: PayPeriodStatus
    closed_at: Optional[datetime] = None
    closed_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PayoutLineResponse(BaseModel):
    user_id: int
    first_name: str
    last_name: str
    payment_type: PaymentType
    total_hours: Decimal
    hourly_rate: Decimal
    gross_amount: Decimal
    deductions: Decimal
    net_amount: Decimal


class ClosePreviewResponse(BaseModel):
    period: PayPeriodResponse
    payouts: List[PayoutLineResponse]
    total_gross: Decimal
    total_net: Decimal


class PayoutResponse(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str] = None
    total_hours: Decimal
    hourly_rate: Decimal
    gross_amount: Decimal
    deductions: Decimal
    net_amount: Decimal
    created_at: Optional[datetime] = None


class CloseResponse(BaseModel):
    message: str
    period: PayPeriodResponse
    payouts_created: int
    total_net: Decimal


@router.get("", response_model=List[PayPeriodResponse])
async def list_pay_periods(db: DbSession, admin: AdminUser, status: Optional[PayPeriodStatus] = None):
    return await PayrollService(db).list_periods(status)


@router.post("", response_model=PayPeriodResponse, status_code=status.HTTP_201_CREATED)
async def create_pay_period(payload: PayPeriodCreateRequest, db: DbSession, admin: AdminUser):
    """Create a single pay period; overlapping an existing one is rejected."""
    return await PayrollService(db).create_period(
        name=payload.name,
        start_date=payload.start_date,
        end_date=payload.end_date,
        actor=admin,
        frequency=payload.frequency,
    )


@router.post("/generate", response_model=List[PayPeriodResponse], status_code=status.HTTP_201_CREATED)
async def generate_pay_periods(payload: PayPeriodGenerateRequest, db: DbSession, admin: AdminUser):
    """Generate six months of periods for a pay frequency."""
    return await PayrollService(db).generate_periods(payload.frequency, payload.start_date, admin)


@router.get("/{period_id}", response_model=PayPeriodResponse)
async def get_pay_period(period_id: int, db: DbSession, admin: AdminUser):
    return await PayrollService(db).get_period(period_id)


@router.get("/{period_id}/close-preview", response_model=ClosePreviewResponse)
async def close_preview(period_id: int, db: DbSession, admin: AdminUser):
    """What closing the period would pay each educator, without writing anything."""
    service = PayrollService(db)
    period = await service.get_period(period_id)
    lines = await service.calculate_payouts(period)
    return ClosePreviewResponse(
        period=PayPeriodResponse.model_validate(period),
        payouts=[
            PayoutLineResponse(
                user_id=line.user_id,
                first_name=line.first_name,
                last_name=line.last_name,
                payment_type=line.payment_type,
                total_hours=line.total_hours,
                hourly_rate=line.hourly_rate,
                gross_amount=line.gross_amount,
                deductions=line.deductions,
                net_amount=line.net_amount,
            )
            for line in lines
        ],
        total_gross=sum((line.gross_amount for line in lines), ZERO),
        total_net=sum((line.net_amount for line in lines), ZERO),
    )


@router.post("/{period_id}/close", response_model=CloseResponse)
async def close_pay_period(period_id: int, db: DbSession, admin: AdminUser):
    service = PayrollService(db)
    payouts = await service.close_period(period_id, admin)
    period = await service.get_period(period_id)
    return CloseResponse(
        message="Pay period closed",
        period=PayPeriodResponse.model_validate(period),
        payouts_created=len(payouts),
        total_net=sum((p.net_amount for p in payouts), ZERO),
    )


@router.get("/{period_id}/payouts", response_model=List[PayoutResponse])
async def list_payouts(period_id: int, db: DbSession, admin: AdminUser):
    payouts = await PayrollService(db).get_payouts(period_id)
    return [
        PayoutResponse(
            id=p.id,
            user_id=p.user_id,
            user_name=p.user.full_name if p.user else None,
            total_hours=p.total_hours,
            hourly_rate=p.hourly_rate,
            gross_amount=p.gross_amount,
            deductions=p.deductions,
            net_amount=p.net_amount,
            created_at=p.created_at,
        )
        for p in payouts
    ]


@router.get("/{period_id}/export/excel")
async def export_pay_period_excel(period_id: int, db: DbSession, admin: AdminUser):
    """
    Export a pay period to Excel.

    Closed periods export their payout snapshots; open periods export the
    current close preview.
    """
    service = PayrollService(db)
    period = await service.get_period(period_id)

    if period.status == PayPeriodStatus.CLOSED:
        payouts = await service.get_payouts(period_id)
        rows = [
            {
                "Employee": p.user.full_name if p.user else f"User {p.user_id}",
                "Hours": float(p.total_hours),
                "Hourly Rate": float(p.hourly_rate),
                "Gross": float(p.gross_amount),
                "Deductions": float(p.deductions),
                "Net": float(p.net_amount),
            }
            for p in payouts
        ]
    else:
        lines = await service.calculate_payouts(period)
        rows = [
            {
                "Employee": f"{line.first_name} {line.last_name}",
                "Hours": float(line.total_hours),
                "Hourly Rate": float(line.hourly_rate),
                "Gross": float(line.gross_amount),
                "Deductions": float(line.deductions),
                "Net": float(line.net_amount),
            }
            for line in lines
        ]

    payouts_df = pd.DataFrame(
        rows, columns=["Employee", "Hours", "Hourly Rate", "Gross", "Deductions", "Net"]
    )
    summary_df = pd.DataFrame({
        "Metric": ["Pay period", "Start date", "End date", "Status", "Employees", "Total hours", "Total net"],
        "Value": [
            period.name,
            period.start_date.isoformat(),
            period.end_date.isoformat(),
            period.status.value,
            len(rows),
            round(float(payouts_df["Hours"].sum()), 2) if rows else 0,
            round(float(payouts_df["Net"].sum()), 2) if rows else 0,
        ],
    })

    output = build_workbook({"Payouts": payouts_df, "Summary": summary_df})
    filename = f"payroll_{period.start_date.isoformat()}_{period.end_date.isoformat()}.xlsx"
    logger.info(f"Exported pay period {period.id} ({len(rows)} rows)")
    return xlsx_response(output, filename)
