"""Parent portal API endpoints: a parent's own children, invoices, documents and messages."""

import logging
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse
from pydantic import BaseModel
from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload

from daycare.api.children import EmergencyContactResponse
from daycare.api.dependencies import CurrentParent, DbSession
from daycare.api.files import DocumentResponse
from daycare.api.invoices import InvoiceDetailResponse, InvoiceResponse, PaymentResponse, invoice_to_response
from daycare.api.messages import MessageResponse, message_to_response
from daycare.models import (
    BillingCycle,
    Child,
    ChildStatus,
    Document,
    Invoice,
    InvoiceStatus,
    ParentChild,
    Payment,
)
from daycare.services.invoice_service import OPEN_STATUSES, InvoiceService
from daycare.services.message_service import MessageService
from daycare.utils.billing import to_money
from daycare.utils.timezone import today_local

router = APIRouter(prefix="/api/parent", tags=["parent-portal"])
logger = logging.getLogger(__name__)

UPCOMING_DAYS = 30
RECENT_INVOICES = 5


class ParentChildResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    date_of_birth: date
    status: ChildStatus
    enrollment_start_date: date
    monthly_rate: Optional[Decimal] = None
    billing_cycle: BillingCycle
    allergies: Optional[list] = None
    medical_notes: Optional[str] = None
    relationship: str
    is_primary_contact: bool
    can_pickup: bool


class ParentChildDetailResponse(ParentChildResponse):
    emergency_contacts: List[EmergencyContactResponse] = []


class DashboardResponse(BaseModel):
    children_count: int
    children: List[ParentChildResponse]
    outstanding_balance: Decimal
    credit_balance: Decimal
    upcoming_invoices_count: int
    recent_invoices: List[InvoiceResponse]
    unread_messages_count: int


class ParentMessageRequest(BaseModel):
    subject: Optional[str] = None
    message: str
    to_user_id: Optional[int] = None


def _child_response(link: ParentChild, detail: bool = False) -> ParentChildResponse:
    child = link.child
    data = dict(
        id=child.id,
        first_name=child.first_name,
        last_name=child.last_name,
        date_of_birth=child.date_of_birth,
        status=child.status,
        enrollment_start_date=child.enrollment_start_date,
        monthly_rate=child.monthly_rate,
        billing_cycle=child.billing_cycle,
        allergies=child.allergies,
        medical_notes=child.medical_notes,
        relationship=link.relationship_type,
        is_primary_contact=link.is_primary_contact,
        can_pickup=link.can_pickup,
    )
    if detail:
        return ParentChildDetailResponse(
            **data,
            emergency_contacts=[
                EmergencyContactResponse.model_validate(c) for c in child.emergency_contacts
            ],
        )
    return ParentChildResponse(**data)


async def _child_links(db, parent_id: int) -> List[ParentChild]:
    result = await db.execute(
        select(ParentChild)
        .join(Child, ParentChild.child_id == Child.id)
        .options(
            selectinload(ParentChild.child).selectinload(Child.emergency_contacts)
        )
        .where(ParentChild.parent_id == parent_id)
        .order_by(Child.first_name)
    )
    return list(result.scalars().all())


def _visible(invoice: Invoice) -> bool:
    return invoice.status != InvoiceStatus.DRAFT


@router.get("/dashboard", response_model=DashboardResponse)
async def parent_dashboard(db: DbSession, parent: CurrentParent):
    """Children, money owed and unread messages at a glance."""
    links = await _child_links(db, parent.id)

    balance = await db.execute(
        select(func.coalesce(func.sum(Invoice.balance_due), 0)).where(
            Invoice.parent_id == parent.id,
            Invoice.status.in_(OPEN_STATUSES),
        )
    )
    today = today_local()
    upcoming = await db.execute(
        select(func.count(Invoice.id)).where(
            Invoice.parent_id == parent.id,
            Invoice.status.in_((InvoiceStatus.SENT, InvoiceStatus.PARTIAL)),
            Invoice.due_date >= today,
            Invoice.due_date <= today + timedelta(days=UPCOMING_DAYS),
        )
    )
    invoices = await InvoiceService(db).list_invoices(parent_id=parent.id)
    recent = [invoice for invoice in invoices if _visible(invoice)][:RECENT_INVOICES]

    return DashboardResponse(
        children_count=len(links),
        children=[_child_response(link) for link in links],
        outstanding_balance=to_money(balance.scalar() or 0),
        credit_balance=parent.credit_balance,
        upcoming_invoices_count=upcoming.scalar() or 0,
        recent_invoices=[invoice_to_response(invoice) for invoice in recent],
        unread_messages_count=await MessageService(db).parent_unread_count(parent),
    )


@router.get("/children", response_model=List[ParentChildResponse])
async def parent_children(db: DbSession, parent: CurrentParent):
    links = await _child_links(db, parent.id)
    return [_child_response(link) for link in links]


@router.get("/children/{child_id}", response_model=ParentChildDetailResponse)
async def parent_child_detail(child_id: int, db: DbSession, parent: CurrentParent):
    for link in await _child_links(db, parent.id):
        if link.child_id == child_id:
            return _child_response(link, detail=True)
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Child not found"
    )


@router.get("/invoices", response_model=List[InvoiceResponse])
async def parent_invoices(
    db: DbSession, parent: CurrentParent, status: Optional[InvoiceStatus] = None
):
    """The parent's invoices; drafts stay hidden until they are sent."""
    invoices = await InvoiceService(db).list_invoices(parent_id=parent.id, status=status)
    return [invoice_to_response(invoice) for invoice in invoices if _visible(invoice)]


@router.get("/invoices/{invoice_id}", response_model=InvoiceDetailResponse)
async def parent_invoice_detail(invoice_id: int, db: DbSession, parent: CurrentParent):
    invoice = await InvoiceService(db).get_invoice(invoice_id)
    if invoice.parent_id != parent.id or not _visible(invoice):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invoice not found"
        )
    return invoice_to_response(invoice, with_payments=True)


@router.get("/payments", response_model=List[PaymentResponse])
async def parent_payment_history(db: DbSession, parent: CurrentParent):
    result = await db.execute(
        select(Payment)
        .where(Payment.parent_id == parent.id)
        .order_by(Payment.payment_date.desc(), Payment.id.desc())
    )
    return result.scalars().all()


async def _child_ids(db, parent_id: int) -> List[int]:
    result = await db.execute(
        select(ParentChild.child_id).where(ParentChild.parent_id == parent_id)
    )
    return list(result.scalars().all())


def _family_documents(parent_id: int, child_ids: List[int]):
    """Documents linked to the parent or to one of their children."""
    linked = Document.linked_parent_id == parent_id
    if child_ids:
        linked = or_(linked, Document.linked_child_id.in_(child_ids))
    return select(Document).where(linked)


@router.get("/documents", response_model=List[DocumentResponse])
async def parent_documents(db: DbSession, parent: CurrentParent):
    child_ids = await _child_ids(db, parent.id)
    query = _family_documents(parent.id, child_ids)
    result = await db.execute(query.order_by(Document.created_at.desc(), Document.id.desc()))
    return result.scalars().all()


@router.get("/documents/child/{child_id}", response_model=List[DocumentResponse])
async def parent_child_documents(child_id: int, db: DbSession, parent: CurrentParent):
    if child_id not in await _child_ids(db, parent.id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Child not found"
        )
    result = await db.execute(
        select(Document)
        .where(Document.linked_child_id == child_id)
        .order_by(Document.created_at.desc(), Document.id.desc())
    )
    return result.scalars().all()


@router.get("/documents/{document_id}/download")
async def parent_download_document(document_id: int, db: DbSession, parent: CurrentParent):
    """Download a document shared with this family; anything else is reported as missing."""
    child_ids = await _child_ids(db, parent.id)
    result = await db.execute(
        _family_documents(parent.id, child_ids).where(Document.id == document_id)
    )
    document = result.scalar_one_or_none()
    if not document or not Path(document.file_path).exists():
        logger.warning(f"Parent {parent.id} asked for unavailable document {document_id}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found"
        )
    return FileResponse(
        document.file_path,
        media_type=document.mime_type,
        filename=document.original_filename,
    )


@router.get("/messages", response_model=List[MessageResponse])
async def parent_messages(db: DbSession, parent: CurrentParent):
    messages = await MessageService(db).parent_inbox(parent)
    return [message_to_response(message) for message in messages]


@router.get("/messages/unread-count")
async def parent_unread_count(db: DbSession, parent: CurrentParent):
    return {"count": await MessageService(db).parent_unread_count(parent)}


@router.post("/messages", status_code=status.HTTP_201_CREATED)
async def parent_send_message(payload: ParentMessageRequest, db: DbSession, parent: CurrentParent):
    """Send a message to staff; the first active admin receives it unless a user is named."""
    message = await MessageService(db).send_from_parent(
        parent, payload.message, subject=payload.subject, to_user_id=payload.to_user_id
    )
    return {"id": message.id, "subject": message.subject, "to_user_id": message.to_user_id}


@router.patch("/messages/read-all")
async def parent_read_all(db: DbSession, parent: CurrentParent):
    updated = await MessageService(db).parent_read_all(parent)
    return {"message": "All messages marked as read", "updated": updated}


@router.patch("/messages/{message_id}/read")
async def parent_mark_read(message_id: int, db: DbSession, parent: CurrentParent):
    message = await MessageService(db).parent_mark_read(parent, message_id)
    return {"id": message.id, "is_read": message.is_read}
