"""
FastAPI dependencies — database session, service wiring and auth guards.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import password_hasher, token_issuer
from app.db.session import async_session_factory
from app.models.user import UserRole
from app.repositories.user_repository import SqlAlchemyUserRepository
from app.schemas.token import TokenClaims
from app.services.user_service import UserService

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_PREFIX}/auth/login", auto_error=False
)

_service_logger = logging.getLogger("app.services.user_service")


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Service ─────────────────────────────────────────────────────────
async def get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    """Build a request-scoped service over the request's session."""
    return UserService(
        repository=SqlAlchemyUserRepository(db),
        hasher=password_hasher,
        token_issuer=token_issuer,
        logger=_service_logger,
        max_page_size=settings.MAX_PAGE_SIZE,
    )


# ── Auth dependencies ───────────────────────────────────────────────
async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
) -> TokenClaims:
    """Validate the bearer token and return its claims (stateless)."""
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exc

    result = token_issuer.validate(token)
    if not result.ok:
        raise credentials_exc
    return result.value  # type: ignore[return-value]


async def require_admin(
    current_user: TokenClaims = Depends(get_current_user),
) -> TokenClaims:
    """Only allow admin role to proceed."""
    if current_user.role is not UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


def ensure_self_or_admin(current_user: TokenClaims, user_id: int) -> None:
    if current_user.role is not UserRole.ADMIN and current_user.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to access this user",
        )
