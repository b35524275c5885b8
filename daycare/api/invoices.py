"""Invoice and payment API endpoints."""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from daycare.api.dependencies import AdminUser, DbSession
from daycare.core.settings import settings
from daycare.models import Invoice, InvoiceStatus, PricingMode
from daycare.services.invoice_service import InvoiceService
from daycare.utils.updates import update_fields

router = APIRouter(prefix="/api/invoices", tags=["invoices"])
logger = logging.getLogger(__name__)


class LineItem(BaseModel):
    description: str
    quantity: Decimal = Decimal("1")
    rate: Optional[Decimal] = None
    amount: Optional[Decimal] = None


class InvoiceCreateRequest(BaseModel):
    parent_id: int
    child_id: Optional[int] = None
    invoice_date: date
    due_date: Optional[date] = None
    line_items: List[LineItem] = Field(min_length=1)
    tax_enabled: bool = True
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=1)
    pricing_mode: PricingMode = PricingMode.BASE_PLUS_TAX
    notes: Optional[str] = None
    payment_terms: Optional[str] = None


class InvoiceUpdateRequest(BaseModel):
    parent_id: Optional[int] = None
    child_id: Optional[int] = None
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    line_items: Optional[List[LineItem]] = None
    tax_enabled: Optional[bool] = None
    tax_rate: Optional[Decimal] = Field(default=None, ge=0, le=1)
    pricing_mode: Optional[PricingMode] = None
    status: Optional[InvoiceStatus] = None
    notes: Optional[str] = None
    payment_terms: Optional[str] = None


class PaymentRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    payment_date: date
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class ApplyCreditRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    parent_id: Optional[int] = None


class PaymentResponse(BaseModel):
    id: int
    amount: Decimal
    payment_date: date
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    parent_id: int
    parent_name: Optional[str] = None
    child_id: Optional[int] = None
    child_name: Optional[str] = None
    invoice_date: date
    due_date: date
    line_items: list
    subtotal: Decimal
    tax_enabled: bool
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    status: InvoiceStatus
    pricing_mode: PricingMode
    notes: Optional[str] = None
    payment_terms: str
    created_at: Optional[datetime] = None


class InvoiceDetailResponse(InvoiceResponse):
    payments: List[PaymentResponse]


def invoice_to_response(invoice: Invoice, with_payments: bool = False) -> InvoiceResponse:
    data = dict(
        id=invoice.id,
        invoice_number=invoice.invoice_number,
        parent_id=invoice.parent_id,
        parent_name=invoice.parent.full_name if invoice.parent else None,
        child_id=invoice.child_id,
        child_name=invoice.child.full_name if invoice.child else None,
        invoice_date=invoice.invoice_date,
        due_date=invoice.due_date,
        line_items=invoice.line_items,
        subtotal=invoice.subtotal,
        tax_enabled=invoice.tax_enabled,
        tax_rate=invoice.tax_rate,
        tax_amount=invoice.tax_amount,
        total_amount=invoice.total_amount,
        amount_paid=invoice.amount_paid,
        balance_due=invoice.balance_due,
        status=invoice.status,
        pricing_mode=invoice.pricing_mode,
        notes=invoice.notes,
        payment_terms=invoice.payment_terms,
        created_at=invoice.created_at,
    )
    if with_payments:
        return InvoiceDetailResponse(
            **data,
            payments=[PaymentResponse.model_validate(p) for p in invoice.payments],
        )
    return InvoiceResponse(**data)


@router.get("", response_model=List[InvoiceResponse])
async def list_invoices(
    db: DbSession,
    admin: AdminUser,
    parent_id: Optional[int] = None,
    child_id: Optional[int] = None,
    status: Optional[InvoiceStatus] = None,
    search: Optional[str] = None,
):
    """List invoices, newest first."""
    invoices = await InvoiceService(db).list_invoices(parent_id, child_id, status, search)
    return [invoice_to_response(invoice) for invoice in invoices]


@router.post("/mark-overdue")
async def mark_overdue(db: DbSession, admin: AdminUser, as_of: Optional[date] = None):
    """Run the overdue sweep now instead of waiting for the nightly job."""
    count = await InvoiceService(db).mark_overdue(as_of, actor=admin)
    return {"message": f"Marked {count} invoice(s) overdue", "updated": count}


@router.get("/{invoice_id}", response_model=InvoiceDetailResponse)
async def get_invoice(invoice_id: int, db: DbSession, admin: AdminUser):
    """Invoice with payments; balance is recomputed from the payments on read."""
    service = InvoiceService(db)
    invoice = await service.get_invoice(invoice_id)
    await service.reconcile(invoice)
    return invoice_to_response(invoice, with_payments=True)


@router.post("", response_model=InvoiceDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(payload: InvoiceCreateRequest, db: DbSession, admin: AdminUser):
    """Create a DRAFT invoice numbered INV-YYYYMM-NNN."""
    invoice = await InvoiceService(db).create_invoice(
        parent_id=payload.parent_id,
        child_id=payload.child_id,
        invoice_date=payload.invoice_date,
        due_date=payload.due_date or payload.invoice_date + timedelta(days=settings.invoice_due_days),
        line_items=[item.model_dump() for item in payload.line_items],
        tax_enabled=payload.tax_enabled,
        tax_rate=payload.tax_rate,
        pricing_mode=payload.pricing_mode,
        notes=payload.notes,
        payment_terms=payload.payment_terms,
        actor=admin,
    )
    return invoice_to_response(invoice, with_payments=True)


@router.patch("/{invoice_id}", response_model=InvoiceDetailResponse)
async def update_invoice(
    invoice_id: int, payload: InvoiceUpdateRequest, db: DbSession, admin: AdminUser
):
    """Edit an invoice; totals and balance are recalculated."""
    changes = update_fields(payload, Invoice)
    invoice = await InvoiceService(db).update_invoice(invoice_id, changes, admin)
    return invoice_to_response(invoice, with_payments=True)


@router.post("/{invoice_id}/send", response_model=InvoiceDetailResponse)
async def send_invoice(invoice_id: int, db: DbSession, admin: AdminUser):
    """Move a DRAFT invoice to SENT."""
    invoice = await InvoiceService(db).send_invoice(invoice_id, admin)
    return invoice_to_response(invoice, with_payments=True)


@router.delete("/{invoice_id}")
async def delete_invoice(invoice_id: int, db: DbSession, admin: AdminUser):
    await InvoiceService(db).delete_invoice(invoice_id, admin)
    return {"message": "Invoice deleted successfully"}


@router.post("/{invoice_id}/payments", response_model=InvoiceDetailResponse)
async def record_payment(
    invoice_id: int, payload: PaymentRequest, db: DbSession, admin: AdminUser
):
    """Record a payment against the invoice."""
    invoice = await InvoiceService(db).record_payment(
        invoice_id=invoice_id,
        amount=payload.amount,
        payment_date=payload.payment_date,
        payment_method=payload.payment_method,
        reference_number=payload.reference_number,
        notes=payload.notes,
        actor=admin,
    )
    return invoice_to_response(invoice, with_payments=True)


@router.post("/{invoice_id}/apply-credit", response_model=InvoiceDetailResponse)
async def apply_credit(
    invoice_id: int, payload: ApplyCreditRequest, db: DbSession, admin: AdminUser
):
    """Pay down the invoice from the parent's account credit."""
    invoice = await InvoiceService(db).apply_credit(
        invoice_id, payload.amount, admin, parent_id=payload.parent_id
    )
    return invoice_to_response(invoice, with_payments=True)
