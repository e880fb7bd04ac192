"""
Bearer-token identity for authorized operations.

Tokens carry only the user id (`sub`); the role is read from the users table
on every request so a demoted account loses its privileges immediately.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from autofleet.core.config import get_settings
from autofleet.core.logging import bind_actor
from autofleet.db.session import get_db
from autofleet.models.enums import UserRole
from autofleet.models.user import User

settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    """Identity and role of the caller of a lifecycle operation."""

    user_id: int
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_access_token(token: str) -> int:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return int(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise _unauthorized("Invalid or expired token")


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    if credentials is None:
        raise _unauthorized("Not authenticated")

    user_id = decode_access_token(credentials.credentials)
    result = await db.execute(select(User.id, User.role, User.is_active).where(User.id == user_id))
    row = result.one_or_none()
    if row is None:
        raise _unauthorized("Unknown user")
    if not row.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated",
        )
    actor = Actor(user_id=row.id, role=UserRole(row.role))
    bind_actor(actor.user_id, actor.role.value)
    return actor


async def get_current_user_id(actor: Actor = Depends(get_current_actor)) -> int:
    return actor.user_id
