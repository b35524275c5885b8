"""Document storage API endpoints."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from pydantic import BaseModel
from sqlalchemy import String, cast, or_, select

from daycare.api.dependencies import AdminUser, DbSession
from daycare.core.settings import settings
from daycare.models import Child, Document, Parent
from daycare.services.audit_service import log_audit
from daycare.services.storage import DOCUMENT_TYPES, remove_file, save_upload
from daycare.utils.timezone import now_utc
from daycare.utils.updates import update_fields

router = APIRouter(prefix="/api/files", tags=["files"])
logger = logging.getLogger(__name__)


class DocumentUpdateRequest(BaseModel):
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    description: Optional[str] = None
    linked_child_id: Optional[int] = None
    linked_parent_id: Optional[int] = None


class DocumentResponse(BaseModel):
    id: int
    original_filename: str
    file_size: int
    mime_type: str
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    description: Optional[str] = None
    linked_child_id: Optional[int] = None
    linked_parent_id: Optional[int] = None
    uploaded_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def parse_tags(raw: Optional[str]) -> List[str]:
    """Tags arrive as a JSON list or a single comma separated string."""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw.split(",")
    if isinstance(value, str):
        value = [value]
    return [str(tag).strip() for tag in value if str(tag).strip()]


async def _get_document(db, document_id: int) -> Document:
    document = await db.get(Document, document_id)
    if not document:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found"
        )
    return document


async def _check_links(db, child_id: Optional[int], parent_id: Optional[int]) -> None:
    if child_id is not None and await db.get(Child, child_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Child not found")
    if parent_id is not None and await db.get(Parent, parent_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Parent not found")


@router.get("", response_model=List[DocumentResponse])
async def list_documents(
    db: DbSession,
    admin: AdminUser,
    category: Optional[str] = None,
    search: Optional[str] = None,
    linked_child_id: Optional[int] = None,
    linked_parent_id: Optional[int] = None,
):
    """List documents, newest first; search matches file name, description and tags."""
    query = select(Document)
    if category:
        query = query.where(Document.category == category)
    if linked_child_id is not None:
        query = query.where(Document.linked_child_id == linked_child_id)
    if linked_parent_id is not None:
        query = query.where(Document.linked_parent_id == linked_parent_id)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                Document.original_filename.ilike(pattern),
                Document.description.ilike(pattern),
                cast(Document.tags, String).ilike(pattern),
            )
        )
    result = await db.execute(query.order_by(Document.created_at.desc(), Document.id.desc()))
    return result.scalars().all()


@router.get("/categories", response_model=List[str])
async def list_categories(db: DbSession, admin: AdminUser):
    result = await db.execute(
        select(Document.category)
        .where(Document.category.is_not(None))
        .distinct()
        .order_by(Document.category)
    )
    return [row[0] for row in result.all()]


@router.post("/upload", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    db: DbSession,
    admin: AdminUser,
    file: UploadFile = File(...),
    category: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    linked_child_id: Optional[int] = Form(None),
    linked_parent_id: Optional[int] = Form(None),
):
    """Upload a PDF, image or Word document."""
    await _check_links(db, linked_child_id, linked_parent_id)
    stored = await save_upload(file, "documents", DOCUMENT_TYPES, settings.max_document_mb)

    document = Document(
        original_filename=stored.original_filename,
        stored_filename=stored.stored_filename,
        file_path=stored.path,
        file_size=stored.size,
        mime_type=stored.mime_type,
        category=category or None,
        tags=parse_tags(tags),
        description=description or None,
        linked_child_id=linked_child_id,
        linked_parent_id=linked_parent_id,
        uploaded_by=admin.id,
    )
    try:
        db.add(document)
        await db.flush()
        await log_audit(
            db=db,
            action_type="CREATE",
            entity_type="document",
            entity_id=document.id,
            entity_name=document.original_filename,
            description=f"Uploaded document {document.original_filename}",
            user=admin,
        )
        await db.commit()
    except Exception as e:
        await db.rollback()
        remove_file(stored.path)
        logger.error(f"Error saving document {stored.original_filename}: {e}")
        raise

    await db.refresh(document)
    return document


@router.get("/{document_id}/download")
async def download_document(document_id: int, db: DbSession, admin: AdminUser):
    document = await _get_document(db, document_id)
    if not Path(document.file_path).exists():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document file is missing"
        )
    return FileResponse(
        document.file_path,
        media_type=document.mime_type,
        filename=document.original_filename,
    )


@router.patch("/{document_id}", response_model=DocumentResponse)
async def update_document(
    document_id: int, payload: DocumentUpdateRequest, db: DbSession, admin: AdminUser
):
    """Update document metadata."""
    document = await _get_document(db, document_id)
    changes = update_fields(payload, Document)
    if not changes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No updates provided"
        )
    await _check_links(db, changes.get("linked_child_id"), changes.get("linked_parent_id"))

    for key, value in changes.items():
        setattr(document, key, value)
    document.updated_at = now_utc()
    await db.commit()
    await db.refresh(document)
    return document


@router.delete("/{document_id}")
async def delete_document(document_id: int, db: DbSession, admin: AdminUser):
    """Delete a document and its file on disk."""
    document = await _get_document(db, document_id)
    path = document.file_path
    name = document.original_filename
    await db.delete(document)
    await log_audit(
        db=db,
        action_type="DELETE",
        entity_type="document",
        entity_id=document_id,
        entity_name=name,
        description=f"Deleted document {name}",
        user=admin,
    )
    await db.commit()
    remove_file(path)
    return {"message": "Document deleted successfully"}
