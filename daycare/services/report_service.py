"""Report service: financial, enrollment and staffing reports."""

import logging
from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from daycare.core.exceptions import ValidationError
from daycare.models import (
    Child,
    ChildStatus,
    Invoice,
    Parent,
    ParentChild,
    Payment,
    PayPeriod,
    PayPeriodStatus,
    Payout,
    Schedule,
    ScheduleStatus,
    TimeEntry,
    TimeEntryStatus,
    User,
)
from daycare.services.invoice_service import OPEN_STATUSES
from daycare.services.payroll_service import ZERO, PayrollService
from daycare.utils.billing import to_money
from daycare.utils.timezone import hours_between, today_local

logger = logging.getLogger(__name__)

GROUP_BY_OPTIONS = ("day", "week", "month")
AGING_BUCKETS = ("Current", "1-30 days", "31-60 days", "61-90 days", "90+ days")


def revenue_period(day: date, group_by: str) -> str:
    """Label of the day/ISO week/month a payment falls in."""
    if group_by == "day":
        return day.isoformat()
    if group_by == "week":
        year, week, _ = day.isocalendar()
        return f"{year}-{week:02d}"
    return f"{day.year}-{day.month:02d}"


def aging_bucket(days_overdue: int) -> str:
    if days_overdue <= 0:
        return "Current"
    if days_overdue <= 30:
        return "1-30 days"
    if days_overdue <= 60:
        return "31-60 days"
    if days_overdue <= 90:
        return "61-90 days"
    return "90+ days"


class ReportService:
    """Read-only aggregate reports for the admin dashboard."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # Financial

    async def revenue(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        group_by: str = "month",
    ) -> List[dict]:
        if group_by not in GROUP_BY_OPTIONS:
            raise ValidationError("group_by must be one of: day, week, month")

        query = select(Payment.payment_date, Payment.amount)
        if start_date:
            query = query.where(Payment.payment_date >= start_date)
        if end_date:
            query = query.where(Payment.payment_date <= end_date)
        result = await self.db.execute(query)

        periods: Dict[str, List[Decimal]] = {}
        for payment_date, amount in result.all():
            periods.setdefault(revenue_period(payment_date, group_by), []).append(to_money(amount))

        return [
            {
                "period": period,
                "payment_count": len(amounts),
                "total_revenue": sum(amounts, ZERO),
                "avg_payment": to_money(sum(amounts, ZERO) / len(amounts)),
            }
            for period, amounts in sorted(periods.items(), reverse=True)
        ]

    async def outstanding(self) -> List[dict]:
        """Unpaid balance per parent across SENT, PARTIAL and OVERDUE invoices."""
        result = await self.db.execute(
            select(
                Parent.id,
                Parent.first_name,
                Parent.last_name,
                Parent.email,
                Parent.phone,
                func.count(Invoice.id),
                func.sum(Invoice.balance_due),
                func.min(Invoice.due_date),
                func.max(Invoice.due_date),
            )
            .join(Invoice, Invoice.parent_id == Parent.id)
            .where(Invoice.status.in_(OPEN_STATUSES), Invoice.balance_due > 0)
            .group_by(Parent.id, Parent.first_name, Parent.last_name, Parent.email, Parent.phone)
            .order_by(func.sum(Invoice.balance_due).desc())
        )
        return [
            {
                "parent_id": row[0],
                "parent_name": f"{row[1]} {row[2]}",
                "email": row[3],
                "phone": row[4],
                "invoice_count": row[5],
                "total_outstanding": to_money(row[6] or 0),
                "oldest_due_date": row[7],
                "newest_due_date": row[8],
            }
            for row in result.all()
        ]

    async def aging(self, as_of: Optional[date] = None) -> dict:
        """Open balances bucketed by days past due."""
        today = as_of or today_local()
        result = await self.db.execute(
            select(Invoice)
            .options(selectinload(Invoice.parent))
            .where(Invoice.status.in_(OPEN_STATUSES), Invoice.balance_due > 0)
        )

        rows = []
        totals = OrderedDict((bucket, ZERO) for bucket in AGING_BUCKETS)
        for invoice in result.scalars().all():
            days_overdue = (today - invoice.due_date).days
            bucket = aging_bucket(days_overdue)
            totals[bucket] += to_money(invoice.balance_due)
            rows.append({
                "invoice_id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "parent_name": invoice.parent.full_name if invoice.parent else None,
                "invoice_date": invoice.invoice_date,
                "due_date": invoice.due_date,
                "balance_due": to_money(invoice.balance_due),
                "days_overdue": max(days_overdue, 0),
                "aging_bucket": bucket,
            })
        rows.sort(key=lambda row: row["days_overdue"], reverse=True)
        return {"as_of": today, "invoices": rows, "totals": totals}

    async def payment_history(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> List[dict]:
        query = (
            select(Payment, Parent, Invoice.invoice_number, User)
            .join(Parent, Payment.parent_id == Parent.id)
            .outerjoin(Invoice, Payment.invoice_id == Invoice.id)
            .outerjoin(User, Payment.recorded_by == User.id)
        )
        if start_date:
            query = query.where(Payment.payment_date >= start_date)
        if end_date:
            query = query.where(Payment.payment_date <= end_date)
        result = await self.db.execute(
            query.order_by(Payment.payment_date.desc(), Payment.id.desc())
        )
        return [
            {
                "id": payment.id,
                "payment_date": payment.payment_date,
                "amount": to_money(payment.amount),
                "payment_method": payment.payment_method,
                "reference_number": payment.reference_number,
                "parent_name": parent.full_name,
                "invoice_number": invoice_number,
                "recorded_by": user.full_name if user else None,
            }
            for payment, parent, invoice_number, user in result.all()
        ]

    # Enrollment

    async def enrollment_summary(self) -> List[dict]:
        result = await self.db.execute(
            select(
                Child.status,
                func.count(Child.id),
                func.avg(Child.monthly_rate),
                func.sum(Child.monthly_rate),
            )
            .group_by(Child.status)
            .order_by(Child.status)
        )
        return [
            {
                "status": status.value,
                "count": count,
                "avg_monthly_rate": to_money(avg_rate) if avg_rate is not None else None,
                "total_monthly_revenue": to_money(total or 0),
            }
            for status, count, avg_rate, total in result.all()
        ]

    async def enrollment_trends(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> List[dict]:
        """New enrollments per start month."""
        query = select(Child.enrollment_start_date, Child.status)
        if start_date:
            query = query.where(Child.enrollment_start_date >= start_date)
        if end_date:
            query = query.where(Child.enrollment_start_date <= end_date)
        result = await self.db.execute(query)

        months: Dict[str, dict] = {}
        for start, status in result.all():
            key = f"{start.year}-{start.month:02d}"
            entry = months.setdefault(key, {"month": key, "new_enrollments": 0, "still_active": 0})
            entry["new_enrollments"] += 1
            if status == ChildStatus.ACTIVE:
                entry["still_active"] += 1
        return [months[key] for key in sorted(months, reverse=True)]

    async def waitlist(self) -> List[dict]:
        result = await self.db.execute(
            select(Child)
            .options(selectinload(Child.parent_links).selectinload(ParentChild.parent))
            .where(Child.status == ChildStatus.WAITLIST)
            .order_by(Child.waitlist_priority, Child.created_at)
        )
        rows = []
        for child in result.scalars().all():
            primary = next(
                (link.parent for link in child.parent_links if link.is_primary_contact),
                child.parent_links[0].parent if child.parent_links else None,
            )
            rows.append({
                "id": child.id,
                "child_name": child.full_name,
                "date_of_birth": child.date_of_birth,
                "waitlist_priority": child.waitlist_priority,
                "waitlist_date": child.created_at,
                "parent_name": primary.full_name if primary else None,
                "phone": primary.phone if primary else None,
                "email": primary.email if primary else None,
            })
        return rows

    # Staffing

    async def staffing_hours(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> List[dict]:
        """APPROVED hours and their cost per educator."""
        query = (
            select(
                User.id,
                User.first_name,
                User.last_name,
                User.hourly_rate,
                func.count(TimeEntry.id),
                func.sum(TimeEntry.total_hours),
            )
            .join(TimeEntry, TimeEntry.user_id == User.id)
            .where(TimeEntry.status == TimeEntryStatus.APPROVED)
            .group_by(User.id, User.first_name, User.last_name, User.hourly_rate)
            .order_by(func.sum(TimeEntry.total_hours).desc())
        )
        if start_date:
            query = query.where(TimeEntry.entry_date >= start_date)
        if end_date:
            query = query.where(TimeEntry.entry_date <= end_date)
        result = await self.db.execute(query)

        rows = []
        for user_id, first, last, rate, entries, hours in result.all():
            total_hours = to_money(hours or 0)
            hourly_rate = to_money(rate or 0)
            rows.append({
                "educator_id": user_id,
                "educator_name": f"{first} {last}",
                "hourly_rate": hourly_rate,
                "entry_count": entries,
                "total_hours": total_hours,
                "total_cost": to_money(total_hours * hourly_rate),
                "avg_hours_per_day": to_money(total_hours / entries) if entries else ZERO,
            })
        return rows

    async def staffing_payroll(self, pay_period_id: Optional[int] = None) -> List[dict]:
        """Per period totals: payout snapshots when closed, the close preview when open."""
        query = select(PayPeriod).order_by(PayPeriod.start_date.desc())
        if pay_period_id is not None:
            query = query.where(PayPeriod.id == pay_period_id)
        periods = (await self.db.execute(query)).scalars().all()

        payroll = PayrollService(self.db)
        rows = []
        for period in periods:
            if period.status == PayPeriodStatus.CLOSED:
                result = await self.db.execute(
                    select(
                        func.count(Payout.id),
                        func.coalesce(func.sum(Payout.total_hours), 0),
                        func.coalesce(func.sum(Payout.gross_amount), 0),
                        func.coalesce(func.sum(Payout.net_amount), 0),
                    ).where(Payout.pay_period_id == period.id)
                )
                count, hours, gross, net = result.one()
            else:
                lines = await payroll.calculate_payouts(period)
                count = len(lines)
                hours = sum((line.total_hours for line in lines), ZERO)
                gross = sum((line.gross_amount for line in lines), ZERO)
                net = sum((line.net_amount for line in lines), ZERO)
            rows.append({
                "pay_period_id": period.id,
                "name": period.name,
                "start_date": period.start_date,
                "end_date": period.end_date,
                "period_status": period.status.value,
                "educator_count": count,
                "total_hours": to_money(hours),
                "total_gross_pay": to_money(gross),
                "total_net_pay": to_money(net),
            })
        return rows

    async def staffing_coverage(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> List[dict]:
        """Scheduled educators and hours per day."""
        query = select(Schedule)
        if start_date:
            query = query.where(Schedule.shift_date >= start_date)
        if end_date:
            query = query.where(Schedule.shift_date <= end_date)
        result = await self.db.execute(query.order_by(Schedule.shift_date))

        days: Dict[date, dict] = OrderedDict()
        for shift in result.scalars().all():
            entry = days.setdefault(shift.shift_date, {
                "date": shift.shift_date,
                "scheduled_educators": 0,
                "total_scheduled_hours": 0.0,
                "accepted_count": 0,
                "pending_count": 0,
                "declined_count": 0,
            })
            entry["scheduled_educators"] += 1
            if shift.status != ScheduleStatus.DECLINED:
                entry["total_scheduled_hours"] += hours_between(shift.start_time, shift.end_time)
            entry[f"{shift.status.value.lower()}_count"] += 1
        for entry in days.values():
            entry["total_scheduled_hours"] = round(entry["total_scheduled_hours"], 2)
        return list(days.values())
