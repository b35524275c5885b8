"""Authentication API endpoints."""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import func, select

from daycare.api.dependencies import CurrentUser, DbSession
from daycare.core.security import (
    MIN_PASSWORD_LENGTH,
    create_access_token,
    get_password_hash,
    verify_password,
)
from daycare.core.settings import settings
from daycare.models import Parent, User, UserRole
from daycare.utils.timezone import now_utc

router = APIRouter(prefix="/api/auth", tags=["authentication"])
logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    """Account as seen by its owner."""
    id: int
    email: str
    first_name: str
    last_name: str
    role: UserRole
    is_active: bool
    must_reset_password: bool
    parent_id: Optional[int] = None

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserResponse


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH)


async def _parent_id_for(db, user: User) -> Optional[int]:
    if user.role != UserRole.PARENT:
        return None
    result = await db.execute(select(Parent.id).where(Parent.user_id == user.id))
    return result.scalar_one_or_none()


@router.post("/login", response_model=LoginResponse)
async def login(credentials: LoginRequest, db: DbSession) -> LoginResponse:
    """Authenticate by email and password and return an access token."""
    result = await db.execute(
        select(User).where(func.lower(User.email) == credentials.email.strip().lower())
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is inactive",
        )

    parent_id = await _parent_id_for(db, user)
    claims = {"sub": str(user.id), "email": user.email, "role": user.role.value}
    if parent_id is not None:
        claims["parent_id"] = parent_id

    token = create_access_token(
        data=claims, expires_delta=timedelta(minutes=settings.access_token_expire_minutes)
    )
    logger.info(f"User {user.email} logged in as {user.role.value}")

    user_response = UserResponse.model_validate(user)
    user_response.parent_id = parent_id
    return LoginResponse(token=token, user=user_response)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: CurrentUser, db: DbSession) -> UserResponse:
    """Get the signed-in account."""
    user_response = UserResponse.model_validate(current_user)
    user_response.parent_id = await _parent_id_for(db, current_user)
    return user_response


@router.post("/change-password")
async def change_password(
    payload: ChangePasswordRequest, current_user: CurrentUser, db: DbSession
):
    """Change own password after confirming the current one."""
    if not verify_password(payload.current_password, current_user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    current_user.password_hash = get_password_hash(payload.new_password)
    current_user.must_reset_password = False
    current_user.updated_at = now_utc()
    await db.commit()

    logger.info(f"Password changed for user {current_user.id}")
    return {"message": "Password updated successfully"}
