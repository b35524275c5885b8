"""Time-off service: staff leave requests and the balances they draw down."""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from daycare.core.exceptions import NotFoundError, ValidationError
from daycare.models import TimeOffRequest, TimeOffStatus, TimeOffType, User
from daycare.services.audit_service import log_audit
from daycare.utils.timezone import now_utc

logger = logging.getLogger(__name__)

HOURS_PER_DAY = Decimal("8")

BALANCE_COLUMNS = {
    TimeOffType.SICK: User.sick_days_remaining,
    TimeOffType.VACATION: User.vacation_days_remaining,
}


def days_requested(request: TimeOffRequest) -> Decimal:
    """Days of leave a request covers; partial-day requests count hours / 8."""
    if request.hours is not None:
        return (Decimal(request.hours) / HOURS_PER_DAY).quantize(Decimal("0.01"))
    return Decimal((request.end_date - request.start_date).days + 1)


class TimeOffService:
    """Service for time-off requests."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _reload(self, request_id: int) -> TimeOffRequest:
        result = await self.db.execute(
            select(TimeOffRequest)
            .options(selectinload(TimeOffRequest.user))
            .where(TimeOffRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def list_requests(
        self,
        user_id: Optional[int] = None,
        status: Optional[TimeOffStatus] = None,
    ) -> List[TimeOffRequest]:
        query = select(TimeOffRequest).options(selectinload(TimeOffRequest.user))
        if user_id is not None:
            query = query.where(TimeOffRequest.user_id == user_id)
        if status:
            query = query.where(TimeOffRequest.status == status)
        result = await self.db.execute(
            query.order_by(TimeOffRequest.created_at.desc(), TimeOffRequest.id.desc())
        )
        return list(result.scalars().all())

    async def create_request(
        self,
        user: User,
        start_date: date,
        end_date: date,
        request_type: TimeOffType,
        reason: Optional[str] = None,
        hours: Optional[Decimal] = None,
    ) -> TimeOffRequest:
        if start_date > end_date:
            raise ValidationError("Start date cannot be after end date")
        if hours is not None:
            if hours <= 0:
                raise ValidationError("Hours must be a positive number")
            if start_date != end_date:
                raise ValidationError("Hourly requests must be a single date")

        request = TimeOffRequest(
            user_id=user.id,
            start_date=start_date,
            end_date=end_date,
            request_type=request_type,
            reason=reason,
            hours=hours,
        )
        self.db.add(request)
        await self.db.commit()
        logger.info(
            f"User {user.id} requested {request_type.value} leave {start_date}..{end_date}"
        )
        return await self._reload(request.id)

    async def _pending(self, request_id: int) -> TimeOffRequest:
        request = await self.db.get(TimeOffRequest, request_id)
        if not request:
            raise NotFoundError("Request not found")
        if request.status != TimeOffStatus.PENDING:
            raise ValidationError("Request already processed")
        return request

    async def approve(self, request_id: int, reviewer: User) -> TimeOffRequest:
        """Approve a PENDING request and deduct SICK or VACATION days from the balance."""
        request = await self._pending(request_id)
        days = days_requested(request)

        try:
            column = BALANCE_COLUMNS.get(request.request_type)
            if column is not None:
                await self.db.execute(
                    update(User)
                    .where(User.id == request.user_id)
                    .values({column: column - days})
                    .execution_options(synchronize_session=False)
                )
            request.status = TimeOffStatus.APPROVED
            request.reviewed_by = reviewer.id
            request.reviewed_at = now_utc()
            request.updated_at = now_utc()

            await log_audit(
                db=self.db,
                action_type="APPROVE",
                entity_type="time_off_request",
                entity_id=request.id,
                entity_name=f"{request.start_date} to {request.end_date}",
                description=(
                    f"Approved {request.request_type.value.lower()} leave {request.id} "
                    f"for user {request.user_id} ({days} days)"
                ),
                user=reviewer,
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to approve time-off request {request_id}: {e}")
            raise

        return await self._reload(request.id)

    async def reject(
        self, request_id: int, reviewer: User, note: Optional[str] = None
    ) -> TimeOffRequest:
        request = await self._pending(request_id)
        request.status = TimeOffStatus.REJECTED
        request.reviewed_by = reviewer.id
        request.reviewed_at = now_utc()
        request.review_note = note
        request.updated_at = now_utc()

        await log_audit(
            db=self.db,
            action_type="REJECT",
            entity_type="time_off_request",
            entity_id=request.id,
            entity_name=f"{request.start_date} to {request.end_date}",
            description=f"Rejected time-off request {request.id} for user {request.user_id}",
            user=reviewer,
            changes={"reason": note} if note else None,
        )
        await self.db.commit()
        return await self._reload(request.id)

    async def cancel(self, request_id: int, user: User) -> None:
        """Withdraw one of the user's own requests while it is still PENDING."""
        result = await self.db.execute(
            select(TimeOffRequest).where(
                TimeOffRequest.id == request_id,
                TimeOffRequest.user_id == user.id,
                TimeOffRequest.status == TimeOffStatus.PENDING,
            )
        )
        request = result.scalar_one_or_none()
        if not request:
            raise NotFoundError("Request not found or cannot be cancelled")
        await self.db.delete(request)
        await self.db.commit()
