"""Staff messaging API endpoints."""

import logging
from datetime import datetime
from typing import Any, List, Literal, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from daycare.api.dependencies import DbSession, StaffUser
from daycare.models import Message
from daycare.services.message_service import MAX_INBOX_LIMIT, MessageService

router = APIRouter(prefix="/api/messages", tags=["messages"])
logger = logging.getLogger(__name__)


class SendMessageRequest(BaseModel):
    recipient_type: Literal["all", "parent"]
    parent_id: Optional[int] = None
    subject: Optional[str] = None
    message: str


class ReadFlagRequest(BaseModel):
    is_read: Any = None


class BulkUpdateRequest(ReadFlagRequest):
    ids: List[int] = []


class RecipientResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: Optional[str] = None
    children: str


class MessageResponse(BaseModel):
    id: int
    subject: str
    message: str
    is_read: bool
    from_user_id: Optional[int] = None
    from_parent_id: Optional[int] = None
    to_user_id: Optional[int] = None
    to_parent_id: Optional[int] = None
    staff_name: Optional[str] = None
    parent_name: Optional[str] = None
    created_at: Optional[datetime] = None


def message_to_response(message: Message) -> MessageResponse:
    """Flatten a message loaded with its parties."""
    parent = message.from_parent or message.to_parent
    return MessageResponse(
        id=message.id,
        subject=message.subject,
        message=message.body,
        is_read=message.is_read,
        from_user_id=message.from_user_id,
        from_parent_id=message.from_parent_id,
        to_user_id=message.to_user_id,
        to_parent_id=message.to_parent_id,
        staff_name=message.from_user.full_name if message.from_user else None,
        parent_name=parent.full_name if parent else None,
        created_at=message.created_at,
    )


@router.get("/recipients", response_model=List[RecipientResponse])
async def message_recipients(db: DbSession, staff: StaffUser):
    """Parents who can be messaged, with their children's names."""
    parents = await MessageService(db).recipients()
    return [
        RecipientResponse(
            id=parent.id,
            first_name=parent.first_name,
            last_name=parent.last_name,
            email=parent.email,
            children=", ".join(sorted({link.child.full_name for link in parent.child_links})),
        )
        for parent in parents
    ]


@router.get("/inbox", response_model=List[MessageResponse])
async def staff_inbox(
    db: DbSession,
    staff: StaffUser,
    limit: int = Query(10, ge=1, le=MAX_INBOX_LIMIT),
):
    messages = await MessageService(db).staff_inbox(limit)
    return [message_to_response(message) for message in messages]


@router.get("/unread-count")
async def staff_unread_count(db: DbSession, staff: StaffUser):
    return {"count": await MessageService(db).staff_unread_count()}


@router.post("/send")
async def send_message(payload: SendMessageRequest, db: DbSession, staff: StaffUser):
    """Message a single parent or every parent with an enrolled child."""
    messages = await MessageService(db).send_to_parents(
        sender=staff,
        recipient_type=payload.recipient_type,
        body=payload.message,
        subject=payload.subject,
        parent_id=payload.parent_id,
    )
    return {
        "message": f"Sent to {len(messages)} parent(s)",
        "count": len(messages),
        "ids": [m.id for m in messages],
    }


@router.patch("/bulk-update")
async def bulk_update_messages(payload: BulkUpdateRequest, db: DbSession, staff: StaffUser):
    updated = await MessageService(db).bulk_update(payload.ids, payload.is_read)
    return {"updated": updated}


@router.patch("/mark-all")
async def mark_all_messages(payload: ReadFlagRequest, db: DbSession, staff: StaffUser):
    updated = await MessageService(db).mark_all(payload.is_read)
    return {"updated": updated}


@router.patch("/{message_id}/read")
async def mark_message_read(message_id: int, db: DbSession, staff: StaffUser):
    message = await MessageService(db).mark_staff_read(message_id)
    return {"id": message.id, "is_read": message.is_read}
