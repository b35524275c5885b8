"""Payroll service: pay periods, payout aggregation and period closing."""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from daycare.core.exceptions import NotFoundError, ValidationError
from daycare.models import (
    PayFrequency,
    PaymentType,
    PayPeriod,
    PayPeriodStatus,
    Payout,
    TimeEntry,
    TimeEntryStatus,
    User,
    UserRole,
)
from daycare.services.audit_service import log_audit
from daycare.utils.billing import to_money
from daycare.utils.pay_calendar import generate_period_spans, periods_overlap
from daycare.utils.timezone import now_utc

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass
class PayoutLine:
    """One employee's pay for a period before it is written as a payout."""

    user_id: int
    first_name: str
    last_name: str
    payment_type: PaymentType
    total_hours: Decimal
    hourly_rate: Decimal
    gross_amount: Decimal
    deductions: Decimal = ZERO

    @property
    def net_amount(self) -> Decimal:
        return self.gross_amount - self.deductions


class PayrollService:
    """Service for handling pay periods and payroll calculations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_period(self, period_id: int) -> PayPeriod:
        period = await self.db.get(PayPeriod, period_id)
        if not period:
            raise NotFoundError("Pay period not found")
        return period

    async def list_periods(self, status: Optional[PayPeriodStatus] = None) -> List[PayPeriod]:
        query = select(PayPeriod)
        if status:
            query = query.where(PayPeriod.status == status)
        result = await self.db.execute(query.order_by(PayPeriod.start_date.desc()))
        return list(result.scalars().all())

    async def find_overlapping(self, start_date: date, end_date: date) -> Optional[PayPeriod]:
        result = await self.db.execute(
            select(PayPeriod)
            .where(PayPeriod.start_date <= end_date, PayPeriod.end_date >= start_date)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def closed_period_for(self, day: date) -> Optional[PayPeriod]:
        """The CLOSED pay period containing a date, if any."""
        result = await self.db.execute(
            select(PayPeriod)
            .where(
                PayPeriod.start_date <= day,
                PayPeriod.end_date >= day,
                PayPeriod.status == PayPeriodStatus.CLOSED,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_period(
        self,
        name: str,
        start_date: date,
        end_date: date,
        actor: User,
        frequency: Optional[PayFrequency] = None,
    ) -> PayPeriod:
        if end_date < start_date:
            raise ValidationError("End date must be on or after start date")
        if await self.find_overlapping(start_date, end_date):
            raise ValidationError("Pay period overlaps with existing period")

        period = PayPeriod(
            name=name, start_date=start_date, end_date=end_date, frequency=frequency
        )
        self.db.add(period)
        await self.db.flush()
        await log_audit(
            db=self.db,
            action_type="CREATE",
            entity_type="pay_period",
            entity_id=period.id,
            entity_name=name,
            description=f"Created pay period {name} ({start_date} - {end_date})",
            user=actor,
        )
        await self.db.commit()
        await self.db.refresh(period)
        return period

    async def generate_periods(
        self, frequency: PayFrequency, start_date: date, actor: User
    ) -> List[PayPeriod]:
        """Create six months of periods from start_date, skipping any that overlap."""
        existing = await self.db.execute(select(PayPeriod.start_date, PayPeriod.end_date))
        taken = [(row[0], row[1]) for row in existing.all()]

        created = []
        for span in generate_period_spans(frequency, start_date):
            if any(periods_overlap(span.start_date, span.end_date, s, e) for s, e in taken):
                logger.info(f"Skipping overlapping pay period {span.name}")
                continue
            period = PayPeriod(
                name=span.name,
                start_date=span.start_date,
                end_date=span.end_date,
                frequency=frequency,
            )
            self.db.add(period)
            created.append(period)
            taken.append((span.start_date, span.end_date))

        await self.db.flush()
        if created:
            await log_audit(
                db=self.db,
                action_type="CREATE",
                entity_type="pay_period",
                entity_id=None,
                entity_name=frequency.value,
                description=f"Generated {len(created)} {frequency.value} pay periods from {start_date}",
                user=actor,
            )
        await self.db.commit()
        for period in created:
            await self.db.refresh(period)
        logger.info(f"Generated {len(created)} pay periods ({frequency.value})")
        return created

    async def calculate_payouts(self, period: PayPeriod) -> List[PayoutLine]:
        """
        Pay owed to each active educator for a period.

        Hourly staff are paid APPROVED hours inside the period at their rate;
        salaried staff get their salary amount. When the period has a
        frequency only staff on that pay frequency are included.
        """
        staff_filters = [
            User.is_active.is_(True),
            User.role == UserRole.EDUCATOR,
        ]
        if period.frequency:
            staff_filters.append(User.pay_frequency == period.frequency)

        hours_result = await self.db.execute(
            select(User, func.coalesce(func.sum(TimeEntry.total_hours), 0))
            .outerjoin(
                TimeEntry,
                and_(
                    TimeEntry.user_id == User.id,
                    TimeEntry.entry_date >= period.start_date,
                    TimeEntry.entry_date <= period.end_date,
                    TimeEntry.status == TimeEntryStatus.APPROVED,
                ),
            )
            .where(*staff_filters, User.payment_type == PaymentType.HOURLY)
            .group_by(User.id)
            .order_by(User.last_name, User.first_name)
        )

        lines: List[PayoutLine] = []
        for user, hours in hours_result.all():
            total_hours = to_money(hours or 0)
            rate = to_money(user.hourly_rate or 0)
            lines.append(PayoutLine(
                user_id=user.id,
                first_name=user.first_name,
                last_name=user.last_name,
                payment_type=PaymentType.HOURLY,
                total_hours=total_hours,
                hourly_rate=rate,
                gross_amount=to_money(total_hours * rate),
            ))

        salaried_result = await self.db.execute(
            select(User)
            .where(*staff_filters, User.payment_type == PaymentType.SALARY)
            .order_by(User.last_name, User.first_name)
        )
        for user in salaried_result.scalars().all():
            lines.append(PayoutLine(
                user_id=user.id,
                first_name=user.first_name,
                last_name=user.last_name,
                payment_type=PaymentType.SALARY,
                total_hours=ZERO,
                hourly_rate=ZERO,
                gross_amount=to_money(user.salary_amount or 0),
            ))

        return lines

    async def close_period(self, period_id: int, actor: User) -> List[Payout]:
        """Write payout snapshots for the period and mark it CLOSED in one transaction."""
        period = await self.get_period(period_id)
        if period.status == PayPeriodStatus.CLOSED:
            raise ValidationError("Pay period already closed")

        try:
            lines = await self.calculate_payouts(period)
            payouts = [
                Payout(
                    pay_period_id=period.id,
                    user_id=line.user_id,
                    total_hours=line.total_hours,
                    hourly_rate=line.hourly_rate,
                    gross_amount=line.gross_amount,
                    deductions=line.deductions,
                    net_amount=line.net_amount,
                )
                for line in lines
            ]
            self.db.add_all(payouts)

            period.status = PayPeriodStatus.CLOSED
            period.closed_at = now_utc()
            period.closed_by = actor.id

            total = sum((p.net_amount for p in payouts), ZERO)
            await log_audit(
                db=self.db,
                action_type="CLOSE",
                entity_type="pay_period",
                entity_id=period.id,
                entity_name=period.name,
                description=f"Closed pay period {period.name}: {len(payouts)} payout(s), total {total}",
                user=actor,
                changes={"payouts": len(payouts), "total": str(total)},
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error closing pay period {period_id}: {e}")
            raise

        logger.info(f"Closed pay period {period.name} with {len(payouts)} payouts")
        return payouts

    async def get_payouts(self, period_id: int) -> List[Payout]:
        await self.get_period(period_id)
        result = await self.db.execute(
            select(Payout)
            .options(selectinload(Payout.user))
            .where(Payout.pay_period_id == period_id)
            .order_by(Payout.id)
        )
        return list(result.scalars().all())
