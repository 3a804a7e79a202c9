"""
User management endpoints.

- Listing and deletion require the admin role.
- Reading and updating a user is allowed for admins and for the user themself;
  only admins may change a role.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.v1.deps import ensure_self_or_admin, get_current_user, get_user_service, require_admin
from app.core.config import settings
from app.models.user import UserRole
from app.schemas.pagination import PaginatedResult
from app.schemas.token import TokenClaims
from app.schemas.user import DeleteResponse, UserFilters, UserRead, UserUpdate
from app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=PaginatedResult[UserRead])
async def list_users(
    page_number: int = Query(1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE),
    role: UserRole | None = Query(None),
    username: str | None = Query(None),
    email: str | None = Query(None),
    name: str | None = Query(None),
    created_from: datetime | None = Query(None),
    created_to: datetime | None = Query(None),
    service: UserService = Depends(get_user_service),
    _admin: TokenClaims = Depends(require_admin),
) -> PaginatedResult[UserRead]:
    filters = UserFilters(
        role=role,
        username=username,
        email=email,
        name=name,
        created_from=created_from,
        created_to=created_to,
    )
    result = await service.list_users(page_number, page_size, filters)
    return result.unwrap()


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: int,
    service: UserService = Depends(get_user_service),
    current_user: TokenClaims = Depends(get_current_user),
) -> UserRead:
    ensure_self_or_admin(current_user, user_id)
    result = await service.get_user(user_id)
    return result.unwrap()


@router.patch("/{user_id}", response_model=UserRead)
async def update_user(
    user_id: int,
    body: UserUpdate,
    service: UserService = Depends(get_user_service),
    current_user: TokenClaims = Depends(get_current_user),
) -> UserRead:
    ensure_self_or_admin(current_user, user_id)
    if "role" in body.model_fields_set and current_user.role is not UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can change roles",
        )
    result = await service.update_user(user_id, body)
    return result.unwrap()


@router.delete("/{user_id}", response_model=DeleteResponse)
async def delete_user(
    user_id: int,
    service: UserService = Depends(get_user_service),
    _admin: TokenClaims = Depends(require_admin),
) -> DeleteResponse:
    result = await service.delete_user(user_id)
    return DeleteResponse(success=result.unwrap())
