from typing import List, Optional
from fastapi import Depends, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.database import get_db
from app.core.permissions import role_error
from app.core.security import decode_access_token
from app.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

__all__ = [
    "get_db",
    "get_current_user",
    "require_role",
    "check_identity_hints",
    "Pagination",
    "get_pagination",
]


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the bearer token to an active user."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    payload = decode_access_token(token)
    if payload is None:
        raise credentials_exception

    user_id = payload.get("sub")
    if user_id is None:
        raise credentials_exception

    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise credentials_exception

    user = db.query(User).filter(User.id == user_id, User.deleted_at.is_(None)).first()
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return user


def require_role(allowed_roles: List[str]):
    """Dependency factory that lets through only the listed roles."""
    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=role_error(current_user.role, allowed_roles)
            )
        return current_user
    return role_checker


async def check_identity_hints(
    organization_hint: Optional[int] = Query(None, alias="organizationId"),
    user_hint: Optional[int] = Query(None, alias="userId"),
    current_user: User = Depends(get_current_user)
) -> User:
    """Accept organizationId/userId query params only when they match the session."""
    if organization_hint is not None and organization_hint != current_user.organization_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Organization does not match the authenticated user")
    if user_hint is not None and user_hint != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User does not match the authenticated user")
    return current_user


class Pagination:
    def __init__(self, page: int, page_size: int):
        self.page = page
        self.page_size = page_size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def get_pagination(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE)
) -> Pagination:
    return Pagination(page, page_size)
