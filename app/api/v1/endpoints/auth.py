"""
Auth endpoints — registration, login & current-user claims.
"""

from fastapi import APIRouter, Depends, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.api.v1.deps import get_current_user, get_user_service
from app.core.config import settings
from app.schemas.token import LoginRequest, TokenClaims, TokenRead
from app.schemas.user import UserCreate, UserRead
from app.services.user_service import UserService

# Rate limiter — keyed by client IP
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def register(
    body: UserCreate,
    service: UserService = Depends(get_user_service),
) -> UserRead:
    """Create a new account with the default ``user`` role."""
    result = await service.register_user(body)
    return result.unwrap()


@router.post("/login", response_model=TokenRead)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    service: UserService = Depends(get_user_service),
) -> TokenRead:
    """Exchange username/password for a bearer token valid for a fixed window."""
    result = await service.login(body)
    return result.unwrap()


@router.get("/me", response_model=TokenClaims)
async def read_current_user(
    current_user: TokenClaims = Depends(get_current_user),
) -> TokenClaims:
    """Return the identity carried by the presented token."""
    return current_user
