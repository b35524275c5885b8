"""API dependencies for authentication and database access."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from daycare.core.database import get_db
from daycare.core.security import verify_token
from daycare.models import Parent, User, UserRole

# Security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Get current authenticated, active user."""
    token_data = verify_token(credentials.credentials)
    if token_data is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await db.get(User, token_data.user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_admin_user(
    current_user: Annotated[User, Depends(get_current_user)]
) -> User:
    """Require the ADMIN role."""
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


async def get_current_staff_user(
    current_user: Annotated[User, Depends(get_current_user)]
) -> User:
    """Require ADMIN or EDUCATOR."""
    if current_user.role not in (UserRole.ADMIN, UserRole.EDUCATOR):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff access required",
        )
    return current_user


async def get_current_educator_user(
    current_user: Annotated[User, Depends(get_current_user)]
) -> User:
    """Require EDUCATOR."""
    if current_user.role != UserRole.EDUCATOR:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Educator access required",
        )
    return current_user


async def get_current_parent(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Parent:
    """Require PARENT and resolve the parent record behind the account."""
    if current_user.role != UserRole.PARENT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Parent access required",
        )
    result = await db.execute(select(Parent).where(Parent.user_id == current_user.id))
    parent = result.scalar_one_or_none()
    if parent is None or not parent.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Parent profile not found or inactive",
        )
    return parent


# Dependency aliases for easier use
DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(get_current_admin_user)]
StaffUser = Annotated[User, Depends(get_current_staff_user)]
EducatorUser = Annotated[User, Depends(get_current_educator_user)]
CurrentParent = Annotated[Parent, Depends(get_current_parent)]
