"""Child service: enrollment status, waitlist ordering and removal."""

import logging
from typing import List, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from daycare.core.exceptions import ConflictError, NotFoundError
from daycare.models import (
    Attendance,
    Child,
    ChildStatus,
    Document,
    EmergencyContact,
    Family,
    Invoice,
    Parent,
    ParentChild,
    User,
)
from daycare.services.audit_service import log_audit
from daycare.services.storage import StoredFile, remove_file, remove_files
from daycare.utils.timezone import now_utc, today_local

logger = logging.getLogger(__name__)


class ChildService:
    """Service for child records."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self._removed_photos: List[str] = []

    async def get_child(self, child_id: int) -> Child:
        result = await self.db.execute(
            select(Child)
            .options(
                selectinload(Child.parent_links).selectinload(ParentChild.parent),
                selectinload(Child.emergency_contacts),
            )
            .where(Child.id == child_id)
            .execution_options(populate_existing=True)
        )
        child = result.scalar_one_or_none()
        if not child:
            raise NotFoundError("Child not found")
        return child

    async def next_waitlist_priority(self) -> int:
        """Position at the end of the waitlist."""
        result = await self.db.execute(
            select(func.max(Child.waitlist_priority)).where(Child.status == ChildStatus.WAITLIST)
        )
        return (result.scalar() or 0) + 1

    async def resequence_waitlist(self) -> None:
        """Renumber waitlisted children 1..n in their current order, closing gaps."""
        result = await self.db.execute(
            select(Child)
            .where(Child.status == ChildStatus.WAITLIST)
            .order_by(Child.waitlist_priority.is_(None), Child.waitlist_priority, Child.id)
        )
        for position, child in enumerate(result.scalars().all(), start=1):
            if child.waitlist_priority != position:
                child.waitlist_priority = position

    async def apply_status(
        self,
        child: Child,
        new_status: ChildStatus,
        requested_priority: Optional[int] = None,
    ) -> None:
        """
        Change a child's status and keep the waitlist consistent.

        Joining the waitlist appends at the end unless a priority is given;
        leaving it clears the priority and closes the gap.
        """
        was_waitlisted = child.status == ChildStatus.WAITLIST
        child.status = new_status

        if new_status == ChildStatus.WAITLIST:
            if requested_priority is not None:
                child.waitlist_priority = requested_priority
            elif not was_waitlisted or child.waitlist_priority is None:
                child.waitlist_priority = await self.next_waitlist_priority()
        else:
            child.waitlist_priority = None
            if was_waitlisted:
                await self.db.flush()
                await self.resequence_waitlist()

    async def link_parents(self, child: Child, parent_ids: List[int]) -> None:
        """Link parents to a new child; the first one is the primary billing contact."""
        for index, parent_id in enumerate(parent_ids):
            parent = await self.db.get(Parent, parent_id)
            if parent is None:
                raise NotFoundError(f"Parent {parent_id} not found")
            self.db.add(ParentChild(
                parent_id=parent_id,
                child_id=child.id,
                relationship_type="Parent",
                is_primary_contact=index == 0,
                can_pickup=True,
                has_billing_responsibility=index == 0,
            ))
            if child.family_id is None and parent.family_id is not None:
                child.family_id = parent.family_id

    async def remove_child_rows(self, child: Child) -> None:
        """Delete a child and its dependent rows inside the caller's transaction.

        Invoices and documents outlive the child with the link cleared. The
        photo path is queued and removed by flush_removed_photos() once the
        caller has committed.
        """
        child_id = child.id
        photo_path = child.photo_path
        was_waitlisted = child.status == ChildStatus.WAITLIST

        await self.db.execute(delete(Attendance).where(Attendance.child_id == child_id))
        await self.db.execute(delete(ParentChild).where(ParentChild.child_id == child_id))
        await self.db.execute(delete(EmergencyContact).where(EmergencyContact.child_id == child_id))
        await self.db.execute(
            update(Invoice)
            .where(Invoice.child_id == child_id)
            .values(child_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            update(Document)
            .where(Document.linked_child_id == child_id)
            .values(linked_child_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(delete(Child).where(Child.id == child_id))

        if photo_path:
            self._removed_photos.append(photo_path)
        if was_waitlisted:
            await self.resequence_waitlist()
        logger.info(f"Removed child {child_id} and dependent records")

    def flush_removed_photos(self) -> None:
        remove_files(self._removed_photos)
        self._removed_photos.clear()

    async def list_children(
        self,
        status: Optional[ChildStatus] = None,
        search: Optional[str] = None,
        family_id: Optional[int] = None,
    ) -> List[Child]:
        """Children with parents loaded; the waitlist comes back in priority order."""
        query = select(Child).options(
            selectinload(Child.parent_links).selectinload(ParentChild.parent)
        )
        if status:
            query = query.where(Child.status == status)
        if family_id is not None:
            query = query.where(Child.family_id == family_id)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(Child.first_name.ilike(pattern), Child.last_name.ilike(pattern))
            )

        if status == ChildStatus.WAITLIST:
            query = query.order_by(Child.waitlist_priority, Child.id)
        else:
            query = query.order_by(Child.last_name, Child.first_name)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create_child(
        self,
        data: dict,
        parent_ids: List[int],
        actor: User,
        waitlist_priority: Optional[int] = None,
    ) -> Child:
        if data.get("family_id") is not None and await self.db.get(Family, data["family_id"]) is None:
            raise NotFoundError("Family not found")
        status = data.pop("status", ChildStatus.ACTIVE)
        child = Child(**data, status=ChildStatus.ACTIVE)
        if child.enrollment_start_date is None:
            child.enrollment_start_date = today_local()

        try:
            self.db.add(child)
            await self.db.flush()
            if status != ChildStatus.ACTIVE:
                await self.apply_status(child, status, waitlist_priority)
            await self.link_parents(child, parent_ids)
            await log_audit(
                db=self.db,
                action_type="CREATE",
                entity_type="child",
                entity_id=child.id,
                entity_name=child.full_name,
                description=f"Created child {child.full_name} ({child.status.value})",
                user=actor,
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error creating child: {e}")
            raise

        logger.info(f"Created child {child.id}")
        return await self.get_child(child.id)

    async def update_child(self, child_id: int, changes: dict, actor: User) -> Child:
        child = await self.get_child(child_id)
        before = {key: str(getattr(child, key)) for key in changes if hasattr(child, key)}

        new_status = changes.pop("status", None)
        priority = changes.pop("waitlist_priority", None)
        for key, value in changes.items():
            setattr(child, key, value)

        if new_status is not None and new_status != child.status:
            await self.apply_status(child, new_status, priority)
        elif priority is not None and child.status == ChildStatus.WAITLIST:
            child.waitlist_priority = priority
        child.updated_at = now_utc()

        await log_audit(
            db=self.db,
            action_type="UPDATE",
            entity_type="child",
            entity_id=child.id,
            entity_name=child.full_name,
            description=f"Updated child {child.full_name}",
            user=actor,
            changes={"before": before, "after": {
                **{key: str(value) for key, value in changes.items()},
                **({"status": new_status.value} if new_status else {}),
            }},
        )
        await self.db.commit()
        return await self.get_child(child_id)

    async def delete_child(self, child_id: int, actor: User) -> None:
        child = await self.get_child(child_id)
        name = child.full_name
        try:
            await self.remove_child_rows(child)
            await log_audit(
                db=self.db,
                action_type="DELETE",
                entity_type="child",
                entity_id=child_id,
                entity_name=name,
                description=f"Deleted child {name}",
                user=actor,
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error deleting child {child_id}: {e}")
            raise
        self.flush_removed_photos()

    async def link_parent(
        self,
        child_id: int,
        parent_id: int,
        actor: User,
        relationship_type: str = "Parent",
        is_primary_contact: bool = False,
        can_pickup: bool = True,
        has_billing_responsibility: bool = False,
    ) -> Child:
        child = await self.get_child(child_id)
        parent = await self.db.get(Parent, parent_id)
        if parent is None:
            raise NotFoundError("Parent not found")
        if any(link.parent_id == parent_id for link in child.parent_links):
            raise ConflictError("Parent is already linked to this child")

        if is_primary_contact:
            for link in child.parent_links:
                link.is_primary_contact = False
        self.db.add(ParentChild(
            parent_id=parent_id,
            child_id=child_id,
            relationship_type=relationship_type,
            is_primary_contact=is_primary_contact,
            can_pickup=can_pickup,
            has_billing_responsibility=has_billing_responsibility,
        ))
        if child.family_id is None and parent.family_id is not None:
            child.family_id = parent.family_id

        await log_audit(
            db=self.db,
            action_type="LINK",
            entity_type="child",
            entity_id=child_id,
            entity_name=child.full_name,
            description=f"Linked {parent.full_name} to {child.full_name} as {relationship_type}",
            user=actor,
        )
        await self.db.commit()
        return await self.get_child(child_id)

    async def unlink_parent(self, child_id: int, parent_id: int, actor: User) -> Child:
        child = await self.get_child(child_id)
        result = await self.db.execute(
            delete(ParentChild).where(
                ParentChild.child_id == child_id,
                ParentChild.parent_id == parent_id,
            )
        )
        if not result.rowcount:
            raise NotFoundError("Parent is not linked to this child")
        await log_audit(
            db=self.db,
            action_type="UNLINK",
            entity_type="child",
            entity_id=child_id,
            entity_name=child.full_name,
            description=f"Unlinked parent {parent_id} from {child.full_name}",
            user=actor,
        )
        await self.db.commit()
        return await self.get_child(child_id)

    async def add_emergency_contact(self, child_id: int, data: dict) -> EmergencyContact:
        await self.get_child(child_id)
        if data.get("is_primary"):
            await self._clear_primary_contact(child_id)
        contact = EmergencyContact(child_id=child_id, **data)
        self.db.add(contact)
        await self.db.commit()
        await self.db.refresh(contact)
        return contact

    async def update_emergency_contact(
        self, child_id: int, contact_id: int, changes: dict
    ) -> EmergencyContact:
        contact = await self._get_contact(child_id, contact_id)
        if changes.get("is_primary"):
            await self._clear_primary_contact(child_id)
        for key, value in changes.items():
            setattr(contact, key, value)
        await self.db.commit()
        await self.db.refresh(contact)
        return contact

    async def delete_emergency_contact(self, child_id: int, contact_id: int) -> None:
        contact = await self._get_contact(child_id, contact_id)
        await self.db.delete(contact)
        await self.db.commit()

    async def _get_contact(self, child_id: int, contact_id: int) -> EmergencyContact:
        contact = await self.db.get(EmergencyContact, contact_id)
        if contact is None or contact.child_id != child_id:
            raise NotFoundError("Emergency contact not found")
        return contact

    async def _clear_primary_contact(self, child_id: int) -> None:
        await self.db.execute(
            update(EmergencyContact)
            .where(EmergencyContact.child_id == child_id)
            .values(is_primary=False)
            .execution_options(synchronize_session=False)
        )

    async def set_photo(self, child_id: int, stored: StoredFile, actor: User) -> Child:
        """Attach a stored photo, replacing (and deleting) any previous one."""
        child = await self.get_child(child_id)
        previous = child.photo_path
        child.photo_path = stored.path
        child.photo_mime_type = stored.mime_type
        child.photo_uploaded_at = now_utc()
        child.updated_at = now_utc()
        await log_audit(
            db=self.db,
            action_type="UPDATE",
            entity_type="child",
            entity_id=child_id,
            entity_name=child.full_name,
            description=f"Uploaded photo for {child.full_name}",
            user=actor,
        )
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            remove_file(stored.path)
            raise
        if previous and previous != stored.path:
            remove_file(previous)
        return child

    async def remove_photo(self, child_id: int, actor: User) -> Child:
        child = await self.get_child(child_id)
        if not child.photo_path:
            raise NotFoundError("Child has no photo")
        path = child.photo_path
        child.photo_path = None
        child.photo_mime_type = None
        child.photo_uploaded_at = None
        child.updated_at = now_utc()
        await log_audit(
            db=self.db,
            action_type="UPDATE",
            entity_type="child",
            entity_id=child_id,
            entity_name=child.full_name,
            description=f"Removed photo of {child.full_name}",
            user=actor,
        )
        await self.db.commit()
        remove_file(path)
        return child
