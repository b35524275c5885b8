"""Family service: household creation, activation and cascading removal."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from daycare.core.exceptions import NotFoundError, ValidationError
from daycare.core.security import default_parent_password, get_password_hash
from daycare.models import (
    Child,
    ChildStatus,
    EmergencyContact,
    Family,
    Invoice,
    Message,
    Parent,
    ParentChild,
    ParentCredit,
    Payment,
    User,
    UserRole,
)
from daycare.services.audit_service import log_audit
from daycare.services.child_service import ChildService
from daycare.utils.timezone import now_utc, today_local

logger = logging.getLogger(__name__)


@dataclass
class GeneratedCredential:
    email: str
    password: str


@dataclass
class FamilyDeletionResult:
    children_deleted: int = 0
    parents_deleted: int = 0
    parents_detached: int = 0
    child_ids: List[int] = field(default_factory=list)


async def ensure_email_available(db: AsyncSession, email: str) -> str:
    """Normalize an email and fail when a login account already uses it."""
    normalized = email.strip().lower()
    result = await db.execute(select(User.id).where(func.lower(User.email) == normalized))
    if result.scalar_one_or_none() is not None:
        raise ValidationError(f"Email {normalized} already in use")
    return normalized


async def create_parent_with_account(
    db: AsyncSession,
    parent_data: dict,
    password: Optional[str],
    family_id: Optional[int] = None,
) -> Parent:
    """Create a parent record, plus a PARENT login account when an email and password are given."""
    user = None
    email = parent_data.get("email")
    if email:
        email = await ensure_email_available(db, email)
        if password:
            user = User(
                email=email,
                password_hash=get_password_hash(password),
                first_name=parent_data["first_name"],
                last_name=parent_data["last_name"],
                role=UserRole.PARENT,
                must_reset_password=True,
            )
            db.add(user)
            await db.flush()

    parent = Parent(
        **{**parent_data, "email": email},
        family_id=family_id,
        user_id=user.id if user else None,
    )
    db.add(parent)
    await db.flush()
    return parent


class FamilyService:
    """Service for family-level operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.child_service = ChildService(db)

    def _family_query(self):
        return select(Family).options(
            selectinload(Family.parents).selectinload(Parent.user),
            selectinload(Family.parents).selectinload(Parent.child_links),
            selectinload(Family.children),
        )

    async def list_families(self) -> List[Family]:
        result = await self.db.execute(
            self._family_query().order_by(Family.name).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_family(self, family_id: int) -> Family:
        result = await self.db.execute(
            self._family_query()
            .where(Family.id == family_id)
            .execution_options(populate_existing=True)
        )
        family = result.scalar_one_or_none()
        if not family:
            raise NotFoundError("Family not found")
        return family

    async def create_family(
        self,
        parent1: dict,
        child: dict,
        actor: User,
        parent2: Optional[dict] = None,
        emergency_contact: Optional[dict] = None,
        family_name: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> tuple[Family, Child, List[GeneratedCredential]]:
        """
        Create a household: parent 1, optional parent 2, one child and an
        optional emergency contact, all in one transaction.

        Parents get login accounts whose initial password is the child's
        birth month and year (MMYYYY). The first parent is the primary
        contact and carries billing responsibility.
        """
        if not parent1.get("email"):
            raise ValidationError("Parent 1 email is required")

        password = default_parent_password(child["date_of_birth"])
        credentials: List[GeneratedCredential] = []

        try:
            family = Family(
                name=family_name or f"{parent1['last_name']} Family",
                notes=notes,
            )
            self.db.add(family)
            await self.db.flush()

            parents = []
            for parent_data in filter(None, [parent1, parent2]):
                parent = await create_parent_with_account(
                    self.db, parent_data, password, family_id=family.id
                )
                parents.append(parent)
                credentials.append(GeneratedCredential(email=parent.email, password=password))

            status = child.get("status") or ChildStatus.ACTIVE
            new_child = Child(
                **{key: value for key, value in child.items() if key != "status"},
                status=status,
                family_id=family.id,
            )
            if new_child.enrollment_start_date is None:
                new_child.enrollment_start_date = today_local()
            if status == ChildStatus.WAITLIST:
                new_child.waitlist_priority = await self.child_service.next_waitlist_priority()
            self.db.add(new_child)
            await self.db.flush()

            for index, parent in enumerate(parents):
                is_primary = index == 0
                self.db.add(ParentChild(
                    parent_id=parent.id,
                    child_id=new_child.id,
                    relationship_type="Parent",
                    is_primary_contact=is_primary,
                    can_pickup=True,
                    has_billing_responsibility=is_primary,
                ))

            if emergency_contact and (emergency_contact.get("name") or emergency_contact.get("phone")):
                self.db.add(EmergencyContact(
                    child_id=new_child.id,
                    name=emergency_contact.get("name") or "",
                    phone=emergency_contact.get("phone") or "",
                    relationship_type=emergency_contact.get("relationship"),
                    is_primary=True,
                ))

            await log_audit(
                db=self.db,
                action_type="CREATE",
                entity_type="family",
                entity_id=family.id,
                entity_name=family.name,
                description=(
                    f"Created family {family.name} with {len(parents)} parent(s) "
                    f"and child {new_child.full_name}"
                ),
                user=actor,
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error creating family: {e}")
            raise

        logger.info(f"Created family {family.id} ({family.name})")
        return await self.get_family(family.id), new_child, credentials

    async def set_accounts_active(self, family_id: int, is_active: bool, actor: User) -> int:
        """Activate or deactivate every parent record and login account in a family."""
        family = await self.get_family(family_id)
        if not family.parents:
            raise ValidationError("Cannot toggle status for a family without parent accounts")

        timestamp = now_utc()
        for parent in family.parents:
            parent.is_active = is_active
            parent.updated_at = timestamp
            if parent.user is not None:
                parent.user.is_active = is_active
                parent.user.updated_at = timestamp

        await log_audit(
            db=self.db,
            action_type="UPDATE",
            entity_type="family",
            entity_id=family.id,
            entity_name=family.name,
            description=f"{'Activated' if is_active else 'Deactivated'} family accounts for {family.name}",
            user=actor,
            changes={"is_active": is_active},
        )
        await self.db.commit()
        return len(family.parents)

    async def delete_family(
        self, family_id: int, delete_parents: bool, actor: User
    ) -> FamilyDeletionResult:
        """
        Remove a family's children and their dependent rows.

        With delete_parents the parent records, their login accounts and
        their billing history go too; otherwise the parents are kept and
        detached from the family.
        """
        family = await self.get_family(family_id)
        outcome = FamilyDeletionResult(child_ids=[child.id for child in family.children])
        parent_ids = [parent.id for parent in family.parents]
        user_ids = [parent.user_id for parent in family.parents if parent.user_id]
        family_name = family.name

        try:
            for child in list(family.children):
                await self.child_service.remove_child_rows(child)
            outcome.children_deleted = len(outcome.child_ids)

            if parent_ids:
                if delete_parents:
                    invoice_ids = select(Invoice.id).where(Invoice.parent_id.in_(parent_ids))
                    await self.db.execute(delete(Payment).where(Payment.invoice_id.in_(invoice_ids)))
                    await self.db.execute(delete(ParentCredit).where(ParentCredit.parent_id.in_(parent_ids)))
                    await self.db.execute(delete(Invoice).where(Invoice.parent_id.in_(parent_ids)))
                    await self.db.execute(
                        delete(Message).where(
                            Message.from_parent_id.in_(parent_ids) | Message.to_parent_id.in_(parent_ids)
                        )
                    )
                    await self.db.execute(delete(ParentChild).where(ParentChild.parent_id.in_(parent_ids)))
                    await self.db.execute(delete(Parent).where(Parent.id.in_(parent_ids)))
                    if user_ids:
                        await self.db.execute(delete(User).where(User.id.in_(user_ids)))
                    outcome.parents_deleted = len(parent_ids)
                else:
                    await self.db.execute(
                        update(Parent).where(Parent.id.in_(parent_ids)).values(family_id=None)
                    )
                    outcome.parents_detached = len(parent_ids)

            await self.db.execute(delete(Family).where(Family.id == family_id))

            await log_audit(
                db=self.db,
                action_type="DELETE",
                entity_type="family",
                entity_id=family_id,
                entity_name=family_name,
                description=(
                    f"Deleted family {family_name}: {outcome.children_deleted} child(ren), "
                    f"{outcome.parents_deleted} parent(s) deleted, "
                    f"{outcome.parents_detached} parent(s) kept"
                ),
                user=actor,
                changes={"child_ids": outcome.child_ids, "parent_ids": parent_ids},
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error deleting family {family_id}: {e}")
            raise

        # Photos go only after the rows are gone for good
        self.child_service.flush_removed_photos()
        logger.info(f"Deleted family {family_id}: {outcome}")
        return outcome
