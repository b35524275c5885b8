"""Message service: staff and parent messaging."""

import logging
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from daycare.core.exceptions import NotFoundError, ValidationError
from daycare.models import Message, Parent, ParentChild, User, UserRole

logger = logging.getLogger(__name__)

DEFAULT_STAFF_SUBJECT = "Message from Daycare"
DEFAULT_PARENT_SUBJECT = "Message from Parent"
MAX_INBOX_LIMIT = 50

TRUE_FLAGS = {"true", "1", "yes"}
FALSE_FLAGS = {"false", "0", "no"}


def parse_read_flag(value) -> Optional[bool]:
    """Interpret a loose is_read flag; None when it is neither true nor false."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in TRUE_FLAGS:
            return True
        if normalized in FALSE_FLAGS:
            return False
    return None


def require_read_flag(value) -> bool:
    flag = parse_read_flag(value)
    if flag is None:
        raise ValidationError("is_read must be true or false")
    return flag


class MessageService:
    """Service for messages between staff and parents."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _with_parties(self, query):
        return query.options(
            selectinload(Message.from_user),
            selectinload(Message.from_parent),
            selectinload(Message.to_parent),
        )

    async def recipients(self) -> List[Parent]:
        """Parents linked to at least one child, with their children loaded."""
        result = await self.db.execute(
            select(Parent)
            .join(ParentChild, ParentChild.parent_id == Parent.id)
            .options(selectinload(Parent.child_links).selectinload(ParentChild.child))
            .distinct()
            .order_by(Parent.last_name, Parent.first_name)
        )
        return list(result.scalars().all())

    # Staff side

    async def staff_inbox(self, limit: int = 10) -> List[Message]:
        limit = max(1, min(limit, MAX_INBOX_LIMIT))
        result = await self.db.execute(
            self._with_parties(select(Message))
            .where((Message.to_user_id.is_not(None)) | (Message.from_user_id.is_not(None)))
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def staff_unread_count(self) -> int:
        result = await self.db.execute(
            select(func.count(Message.id)).where(
                Message.to_user_id.is_not(None),
                Message.is_read.is_(False),
            )
        )
        return result.scalar() or 0

    async def send_to_parents(
        self,
        sender: User,
        recipient_type: str,
        body: str,
        subject: Optional[str] = None,
        parent_id: Optional[int] = None,
    ) -> List[Message]:
        """Send one message per recipient parent: a single parent or every linked parent."""
        body = (body or "").strip()
        if not body:
            raise ValidationError("Message is required")

        if recipient_type == "all":
            parents = await self.recipients()
        elif recipient_type == "parent":
            if not parent_id:
                raise ValidationError("Parent ID is required")
            parent = await self.db.get(Parent, parent_id)
            if parent is None:
                raise NotFoundError("Parent not found")
            parents = [parent]
        else:
            raise ValidationError("Invalid recipient type")

        message_subject = subject.strip() if subject and subject.strip() else DEFAULT_STAFF_SUBJECT
        messages = [
            Message(
                from_user_id=sender.id,
                to_parent_id=parent.id,
                subject=message_subject,
                body=body,
            )
            for parent in parents
        ]
        try:
            self.db.add_all(messages)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error sending message from user {sender.id}: {e}")
            raise

        logger.info(f"User {sender.id} sent '{message_subject}' to {len(messages)} parent(s)")
        return messages

    async def mark_staff_read(self, message_id: int) -> Message:
        message = await self.db.get(Message, message_id)
        if message is None or message.to_user_id is None:
            raise NotFoundError("Message not found")
        message.is_read = True
        await self.db.commit()
        return message

    async def bulk_update(self, ids: List[int], is_read) -> int:
        flag = require_read_flag(is_read)
        if not ids:
            raise ValidationError("Message IDs are required")
        result = await self.db.execute(
            update(Message)
            .where(Message.id.in_(ids), Message.to_user_id.is_not(None))
            .values(is_read=flag)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount

    async def mark_all(self, is_read) -> int:
        flag = require_read_flag(is_read)
        result = await self.db.execute(
            update(Message)
            .where(Message.to_user_id.is_not(None))
            .values(is_read=flag)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount

    # Parent side

    async def parent_inbox(self, parent: Parent) -> List[Message]:
        result = await self.db.execute(
            self._with_parties(select(Message))
            .where(Message.to_parent_id == parent.id)
            .order_by(Message.created_at.desc(), Message.id.desc())
        )
        return list(result.scalars().all())

    async def parent_unread_count(self, parent: Parent) -> int:
        result = await self.db.execute(
            select(func.count(Message.id)).where(
                Message.to_parent_id == parent.id,
                Message.is_read.is_(False),
            )
        )
        return result.scalar() or 0

    async def send_from_parent(
        self,
        parent: Parent,
        body: str,
        subject: Optional[str] = None,
        to_user_id: Optional[int] = None,
    ) -> Message:
        """Parent to staff message; goes to the first active admin when no user is named."""
        body = (body or "").strip()
        if not body:
            raise ValidationError("Message is required")

        if to_user_id is not None:
            recipient = await self.db.get(User, to_user_id)
            if recipient is None or recipient.role == UserRole.PARENT or not recipient.is_active:
                raise NotFoundError("Recipient not found")
        else:
            result = await self.db.execute(
                select(User)
                .where(User.role == UserRole.ADMIN, User.is_active.is_(True))
                .order_by(User.id)
                .limit(1)
            )
            recipient = result.scalar_one_or_none()
            if recipient is None:
                raise ValidationError("No admin available to receive message")

        message = Message(
            from_parent_id=parent.id,
            to_user_id=recipient.id,
            subject=subject.strip() if subject and subject.strip() else DEFAULT_PARENT_SUBJECT,
            body=body,
        )
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)
        logger.info(f"Parent {parent.id} sent message {message.id} to user {recipient.id}")
        return message

    async def parent_mark_read(self, parent: Parent, message_id: int) -> Message:
        message = await self.db.get(Message, message_id)
        if message is None or message.to_parent_id != parent.id:
            raise NotFoundError("Message not found")
        message.is_read = True
        await self.db.commit()
        return message

    async def parent_read_all(self, parent: Parent) -> int:
        result = await self.db.execute(
            update(Message)
            .where(Message.to_parent_id == parent.id, Message.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount
