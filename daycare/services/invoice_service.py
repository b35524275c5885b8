"""Invoice service: totals, numbering, payments, credits and overdue marking."""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from daycare.core.exceptions import ConflictError, NotFoundError, ValidationError
from daycare.core.settings import settings
from daycare.models import (
    Child,
    CreditType,
    Invoice,
    InvoiceStatus,
    Parent,
    ParentCredit,
    Payment,
    PricingMode,
    User,
)
from daycare.services.audit_service import log_audit
from daycare.utils.billing import (
    INVOICE_NUMBER_RE,
    calculate_invoice_totals,
    next_invoice_number,
    normalize_line_items,
    to_money,
)
from daycare.utils.timezone import now_utc, today_local

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

# Issued and not settled
OPEN_STATUSES = (InvoiceStatus.SENT, InvoiceStatus.PARTIAL, InvoiceStatus.OVERDUE)

# Statuses an admin may set by hand; PARTIAL and PAID follow from payments
MANUAL_TRANSITIONS = {
    InvoiceStatus.DRAFT: {InvoiceStatus.SENT},
    InvoiceStatus.SENT: {InvoiceStatus.DRAFT},
    InvoiceStatus.OVERDUE: {InvoiceStatus.SENT},
    InvoiceStatus.PARTIAL: set(),
    InvoiceStatus.PAID: set(),
}


def settled_status(invoice: Invoice) -> InvoiceStatus:
    """Status implied by what has been paid so far; OVERDUE holds until fully paid."""
    if invoice.amount_paid <= ZERO:
        return invoice.status
    if invoice.balance_due <= ZERO:
        return InvoiceStatus.PAID
    if invoice.status == InvoiceStatus.OVERDUE:
        return InvoiceStatus.OVERDUE
    return InvoiceStatus.PARTIAL


class InvoiceService:
    """Service for invoices and the money that settles them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_invoice(self, invoice_id: int) -> Invoice:
        result = await self.db.execute(
            select(Invoice)
            .options(
                selectinload(Invoice.payments),
                selectinload(Invoice.parent),
                selectinload(Invoice.child),
            )
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError("Invoice not found")
        return invoice

    async def list_invoices(
        self,
        parent_id: Optional[int] = None,
        child_id: Optional[int] = None,
        status: Optional[InvoiceStatus] = None,
        search: Optional[str] = None,
    ) -> List[Invoice]:
        query = (
            select(Invoice)
            .join(Parent, Invoice.parent_id == Parent.id)
            .options(selectinload(Invoice.parent), selectinload(Invoice.child))
        )
        if parent_id:
            query = query.where(Invoice.parent_id == parent_id)
        if child_id:
            query = query.where(Invoice.child_id == child_id)
        if status:
            query = query.where(Invoice.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    Invoice.invoice_number.ilike(pattern),
                    Parent.first_name.ilike(pattern),
                    Parent.last_name.ilike(pattern),
                )
            )
        result = await self.db.execute(
            query.order_by(Invoice.invoice_date.desc(), Invoice.invoice_number.desc())
        )
        return list(result.scalars().all())

    async def generate_invoice_number(self, invoice_date: date) -> str:
        """Next INV-YYYYMM-NNN number for the invoice's month."""
        prefix = f"INV-{invoice_date.year}{invoice_date.month:02d}-"
        result = await self.db.execute(
            select(Invoice.invoice_number).where(Invoice.invoice_number.like(f"{prefix}%"))
        )
        numbers = [n for n in result.scalars().all() if INVOICE_NUMBER_RE.match(n)]
        last = max(numbers, key=lambda n: int(INVOICE_NUMBER_RE.match(n).group(2)), default=None)
        return next_invoice_number(invoice_date.year, invoice_date.month, last)

    async def _paid_to_date(self, invoice_id: int) -> Decimal:
        """Payments plus applied credits recorded against an invoice."""
        payments = await self.db.execute(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.invoice_id == invoice_id)
        )
        credits = await self.db.execute(
            select(func.coalesce(func.sum(ParentCredit.amount), 0)).where(
                ParentCredit.invoice_id == invoice_id,
                ParentCredit.credit_type == CreditType.APPLIED,
            )
        )
        return to_money(payments.scalar() or 0) + to_money(credits.scalar() or 0)

    async def reconcile(self, invoice: Invoice) -> Invoice:
        """Recompute amount paid and balance due from the recorded payments."""
        invoice.amount_paid = await self._paid_to_date(invoice.id)
        invoice.balance_due = max(to_money(invoice.total_amount) - invoice.amount_paid, ZERO)
        invoice.status = settled_status(invoice)
        return invoice

    async def create_invoice(
        self,
        parent_id: int,
        invoice_date: date,
        due_date: date,
        line_items: List[dict],
        actor: User,
        child_id: Optional[int] = None,
        tax_enabled: bool = True,
        tax_rate: Optional[Decimal] = None,
        pricing_mode: PricingMode = PricingMode.BASE_PLUS_TAX,
        notes: Optional[str] = None,
        payment_terms: Optional[str] = None,
    ) -> Invoice:
        """Create a DRAFT invoice whose balance starts at its total."""
        if not line_items:
            raise ValidationError("At least one line item is required")
        if due_date < invoice_date:
            raise ValidationError("Due date cannot be before the invoice date")
        parent = await self.db.get(Parent, parent_id)
        if not parent:
            raise NotFoundError("Parent not found")
        if child_id is not None and await self.db.get(Child, child_id) is None:
            raise NotFoundError("Child not found")

        rate = settings.default_tax_rate if tax_rate is None else Decimal(str(tax_rate))
        items = normalize_line_items(line_items)
        totals = calculate_invoice_totals(items, rate, tax_enabled, pricing_mode)

        try:
            invoice = Invoice(
                parent_id=parent_id,
                child_id=child_id,
                invoice_number=await self.generate_invoice_number(invoice_date),
                invoice_date=invoice_date,
                due_date=due_date,
                line_items=items,
                subtotal=totals.subtotal,
                tax_enabled=tax_enabled,
                tax_rate=rate,
                tax_amount=totals.tax_amount,
                total_amount=totals.total_amount,
                amount_paid=ZERO,
                balance_due=totals.total_amount,
                status=InvoiceStatus.DRAFT,
                pricing_mode=pricing_mode,
                notes=notes,
                payment_terms=payment_terms or "Due upon receipt",
                created_by=actor.id,
            )
            self.db.add(invoice)
            await self.db.flush()

            await log_audit(
                db=self.db,
                action_type="CREATE",
                entity_type="invoice",
                entity_id=invoice.id,
                entity_name=invoice.invoice_number,
                description=f"Created invoice {invoice.invoice_number} for {parent.full_name}: {invoice.total_amount}",
                user=actor,
                changes={"total": str(invoice.total_amount), "items": len(items)},
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error creating invoice for parent {parent_id}: {e}")
            raise

        logger.info(f"Created invoice {invoice.invoice_number} total={invoice.total_amount}")
        return await self.get_invoice(invoice.id)

    async def update_invoice(self, invoice_id: int, changes: dict, actor: User) -> Invoice:
        """Apply edits; totals and balance are recalculated when items or tax change."""
        invoice = await self.get_invoice(invoice_id)
        before = {
            "status": invoice.status.value,
            "total": str(invoice.total_amount),
            "due_date": str(invoice.due_date),
        }

        new_status = changes.pop("status", None)
        if new_status is not None and new_status != invoice.status:
            if new_status not in MANUAL_TRANSITIONS[invoice.status]:
                raise ValidationError(
                    f"Cannot change invoice status from {invoice.status.value} to {new_status.value}"
                )
            if new_status == InvoiceStatus.DRAFT and invoice.payments:
                raise ValidationError("An invoice with payments cannot return to DRAFT")
            invoice.status = new_status

        if "parent_id" in changes and changes["parent_id"] != invoice.parent_id:
            if invoice.payments:
                raise ValidationError("Cannot move an invoice with payments to another parent")
            if await self.db.get(Parent, changes["parent_id"]) is None:
                raise NotFoundError("Parent not found")

        recalc_keys = {"line_items", "tax_rate", "tax_enabled", "pricing_mode"}
        needs_recalc = bool(recalc_keys & changes.keys())
        if "line_items" in changes:
            if not changes["line_items"]:
                raise ValidationError("At least one line item is required")
            changes["line_items"] = normalize_line_items(changes["line_items"])

        for key, value in changes.items():
            setattr(invoice, key, value)

        if invoice.due_date < invoice.invoice_date:
            raise ValidationError("Due date cannot be before the invoice date")

        if needs_recalc:
            totals = calculate_invoice_totals(
                invoice.line_items, invoice.tax_rate, invoice.tax_enabled, invoice.pricing_mode
            )
            invoice.subtotal = totals.subtotal
            invoice.tax_amount = totals.tax_amount
            invoice.total_amount = totals.total_amount
        await self.reconcile(invoice)
        invoice.updated_at = now_utc()

        await log_audit(
            db=self.db,
            action_type="UPDATE",
            entity_type="invoice",
            entity_id=invoice.id,
            entity_name=invoice.invoice_number,
            description=f"Updated invoice {invoice.invoice_number}",
            user=actor,
            changes={
                "before": before,
                "after": {
                    "status": invoice.status.value,
                    "total": str(invoice.total_amount),
                    "due_date": str(invoice.due_date),
                },
            },
        )
        await self.db.commit()
        return await self.get_invoice(invoice.id)

    async def send_invoice(self, invoice_id: int, actor: User) -> Invoice:
        """Issue a DRAFT invoice to the parent."""
        invoice = await self.get_invoice(invoice_id)
        if invoice.status != InvoiceStatus.DRAFT:
            raise ValidationError("Only DRAFT invoices can be sent")
        return await self.update_invoice(invoice_id, {"status": InvoiceStatus.SENT}, actor)

    async def delete_invoice(self, invoice_id: int, actor: User) -> None:
        invoice = await self.get_invoice(invoice_id)
        if invoice.payments or invoice.amount_paid > ZERO:
            raise ConflictError("Cannot delete an invoice with recorded payments")

        number = invoice.invoice_number
        await self.db.delete(invoice)
        await log_audit(
            db=self.db,
            action_type="DELETE",
            entity_type="invoice",
            entity_id=invoice_id,
            entity_name=number,
            description=f"Deleted invoice {number}",
            user=actor,
        )
        await self.db.commit()
        logger.info(f"Deleted invoice {number}")

    async def record_payment(
        self,
        invoice_id: int,
        amount: Decimal,
        payment_date: date,
        actor: User,
        payment_method: Optional[str] = None,
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Invoice:
        """Record a payment; the invoice becomes PAID at zero balance, else PARTIAL unless OVERDUE."""
        amount = to_money(amount)
        if amount <= ZERO:
            raise ValidationError("Payment amount must be greater than 0")

        invoice = await self.get_invoice(invoice_id)
        if invoice.status == InvoiceStatus.DRAFT:
            raise ValidationError("Send the invoice before recording payments")
        await self.reconcile(invoice)
        if amount > invoice.balance_due:
            raise ValidationError(
                f"Payment amount {amount} exceeds balance due {invoice.balance_due}"
            )

        try:
            payment = Payment(
                parent_id=invoice.parent_id,
                invoice_id=invoice.id,
                amount=amount,
                payment_date=payment_date,
                payment_method=payment_method,
                reference_number=reference_number,
                notes=notes,
                recorded_by=actor.id,
            )
            self.db.add(payment)
            await self.db.flush()
            await self.reconcile(invoice)
            invoice.updated_at = now_utc()

            await log_audit(
                db=self.db,
                action_type="CREATE",
                entity_type="payment",
                entity_id=payment.id,
                entity_name=invoice.invoice_number,
                description=(
                    f"Recorded payment of {amount} on {invoice.invoice_number}; "
                    f"balance {invoice.balance_due} ({invoice.status.value})"
                ),
                user=actor,
                changes={"amount": str(amount), "method": payment_method},
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error recording payment on invoice {invoice_id}: {e}")
            raise

        logger.info(f"Payment {amount} recorded on {invoice.invoice_number}")
        return await self.get_invoice(invoice.id)

    async def add_credit(
        self, parent_id: int, amount: Decimal, description: Optional[str], actor: User
    ) -> Parent:
        """Add account credit to a parent."""
        amount = to_money(amount)
        if amount <= ZERO:
            raise ValidationError("Credit amount must be greater than 0")
        parent = await self.db.get(Parent, parent_id)
        if not parent:
            raise NotFoundError("Parent not found")

        parent.credit_balance = to_money(parent.credit_balance or 0) + amount
        self.db.add(ParentCredit(
            parent_id=parent_id,
            amount=amount,
            credit_type=CreditType.ADDED,
            description=description or "Account credit",
            created_by=actor.id,
        ))
        await log_audit(
            db=self.db,
            action_type="CREATE",
            entity_type="credit",
            entity_id=parent_id,
            entity_name=parent.full_name,
            description=f"Added credit {amount} for {parent.full_name}",
            user=actor,
        )
        await self.db.commit()
        return parent

    async def apply_credit(
        self, invoice_id: int, amount: Decimal, actor: User, parent_id: Optional[int] = None
    ) -> Invoice:
        """Settle part of an invoice from the parent's credit balance."""
        amount = to_money(amount)
        if amount <= ZERO:
            raise ValidationError("Credit amount must be greater than 0")

        invoice = await self.get_invoice(invoice_id)
        if invoice.status == InvoiceStatus.DRAFT:
            raise ValidationError("Send the invoice before applying credit")
        if parent_id is not None and parent_id != invoice.parent_id:
            raise ValidationError("Invoice parent mismatch")
        parent = invoice.parent
        if to_money(parent.credit_balance or 0) < amount:
            raise ValidationError("Insufficient credit balance")

        await self.reconcile(invoice)
        if amount > invoice.balance_due:
            raise ValidationError("Credit amount exceeds invoice balance")

        try:
            self.db.add(ParentCredit(
                parent_id=parent.id,
                invoice_id=invoice.id,
                amount=amount,
                credit_type=CreditType.APPLIED,
                description=f"Applied to {invoice.invoice_number}",
                created_by=actor.id,
            ))
            parent.credit_balance = to_money(parent.credit_balance) - amount
            await self.db.flush()
            await self.reconcile(invoice)
            invoice.updated_at = now_utc()

            await log_audit(
                db=self.db,
                action_type="APPLY_CREDIT",
                entity_type="invoice",
                entity_id=invoice.id,
                entity_name=invoice.invoice_number,
                description=f"Applied credit {amount} to {invoice.invoice_number}",
                user=actor,
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error applying credit to invoice {invoice_id}: {e}")
            raise

        return await self.get_invoice(invoice.id)

    async def mark_overdue(self, as_of: Optional[date] = None, actor: Optional[User] = None) -> int:
        """Flag issued invoices past their due date with money still owed as OVERDUE."""
        as_of = as_of or today_local()
        result = await self.db.execute(
            update(Invoice)
            .where(
                Invoice.status.in_([InvoiceStatus.SENT, InvoiceStatus.PARTIAL]),
                Invoice.due_date < as_of,
                Invoice.balance_due > 0,
            )
            .values(status=InvoiceStatus.OVERDUE, updated_at=now_utc())
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0
        if count:
            await log_audit(
                db=self.db,
                action_type="UPDATE",
                entity_type="invoice",
                entity_id=None,
                entity_name="overdue sweep",
                description=f"Marked {count} invoice(s) overdue as of {as_of}",
                user=actor,
            )
        await self.db.commit()
        logger.info(f"Overdue sweep as of {as_of}: {count} invoice(s) marked")
        return count
