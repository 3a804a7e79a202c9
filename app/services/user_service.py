"""
User account service — registration, login and user CRUD.

Pure business logic with no HTTP dependencies.  Every public operation
returns a ``Result``: expected rejections come back as typed failures and
any unexpected exception is logged and turned into an opaque
``SERVER_ERROR`` before it leaves the service.
"""

from __future__ import annotations

import functools
import logging
from datetime import datetime, timezone

from app.core.errors import ErrorKind, Result
from app.core.security import PasswordHasher, TokenIssuer
from app.models.user import User, UserRole
from app.repositories.user_repository import DuplicateRecordError, UserRepository
from app.schemas.pagination import PaginatedResult
from app.schemas.token import LoginRequest, TokenRead
from app.schemas.user import UserCreate, UserFilters, UserRead, UserUpdate
from app.services.predicates import build_user_predicate

INVALID_CREDENTIALS_MESSAGE = "Invalid username or password."

_UPDATABLE_FIELDS = ("username", "email", "first_name", "last_name", "role")


def _guarded(operation: str):
    """Convert any exception escaping *operation* into a SERVER_ERROR result."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self: UserService, *args, **kwargs):
            try:
                return await func(self, *args, **kwargs)
            except Exception:
                self.logger.exception("Unexpected error during %s", operation)
                return Result.failure(
                    ErrorKind.SERVER_ERROR,
                    f"An unexpected error occurred during {operation}.",
                )

        return wrapper

    return decorator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _duplicate_message(field: str | None, username: str, email: str) -> str:
    if field == "email":
        return f"Email '{email}' already exists."
    if field == "username":
        return f"Username '{username}' already exists."
    return "Username or email already exists."


class UserService:
    """Stateless orchestrator; safe to share across concurrent requests."""

    def __init__(
        self,
        repository: UserRepository,
        hasher: PasswordHasher,
        token_issuer: TokenIssuer,
        logger: logging.Logger | None = None,
        max_page_size: int = 100,
    ) -> None:
        self.repository = repository
        self.hasher = hasher
        self.token_issuer = token_issuer
        self.logger = logger or logging.getLogger(__name__)
        self.max_page_size = max_page_size

    # ── Authentication ──────────────────────────────────────────────
    @_guarded("login")
    async def login(self, credentials: LoginRequest) -> Result[TokenRead]:
        user = await self.repository.find_by_username(credentials.username)
        if user is None:
            self.logger.warning("Login failed: username %s not found", credentials.username)
            return Result.failure(ErrorKind.UNAUTHORIZED, INVALID_CREDENTIALS_MESSAGE)

        if not self.hasher.verify(credentials.password, user.hashed_password):
            self.logger.warning("Login failed: wrong password for %s", credentials.username)
            return Result.failure(ErrorKind.UNAUTHORIZED, INVALID_CREDENTIALS_MESSAGE)

        issued = self.token_issuer.issue(user.id, user.username, user.email, user.role)
        self.logger.info("User %s authenticated successfully", user.username)
        return Result.success(
            TokenRead(
                token=issued.token,
                username=user.username,
                role=user.role,
                expires_at=issued.expires_at,
            )
        )

    @_guarded("registration")
    async def register_user(
        self, data: UserCreate | None, role: UserRole = UserRole.USER
    ) -> Result[UserRead]:
        if data is None or not data.username or not data.email or not data.password:
            self.logger.warning("Registration rejected: missing username, email or password")
            return Result.failure(
                ErrorKind.INVALID_ARGUMENT,
                "Username, email and password are required.",
            )

        if await self.repository.find_by_username(data.username) is not None:
            self.logger.warning("Registration failed: username %s already exists", data.username)
            return Result.failure(
                ErrorKind.ALREADY_EXISTS, _duplicate_message("username", data.username, data.email)
            )
        if await self.repository.find_by_email(data.email) is not None:
            self.logger.warning("Registration failed: email %s already exists", data.email)
            return Result.failure(
                ErrorKind.ALREADY_EXISTS, _duplicate_message("email", data.username, data.email)
            )

        user = User(
            username=data.username,
            email=data.email,
            hashed_password=self.hasher.hash(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=role.value,
            created_at=_utcnow(),
        )
        try:
            user = await self.repository.insert(user)
        except DuplicateRecordError as exc:
            # lost a race with a concurrent registration
            self.logger.warning(
                "Registration failed at commit: duplicate %s for %s", exc.field, data.username
            )
            return Result.failure(
                ErrorKind.ALREADY_EXISTS, _duplicate_message(exc.field, data.username, data.email)
            )

        self.logger.info("New user created with username %s (id=%s)", user.username, user.id)
        return Result.success(UserRead.model_validate(user))

    # ── CRUD ────────────────────────────────────────────────────────
    @_guarded("user lookup")
    async def get_user(self, user_id: int) -> Result[UserRead]:
        user = await self.repository.find_by_id(user_id)
        if user is None:
            self.logger.warning("User lookup failed: id %s not found", user_id)
            return Result.failure(ErrorKind.NOT_FOUND, f"User with id {user_id} not found.")
        self.logger.info("User found with id %s", user_id)
        return Result.success(UserRead.model_validate(user))

    @_guarded("user update")
    async def update_user(self, user_id: int, data: UserUpdate) -> Result[UserRead]:
        user = await self.repository.find_by_id(user_id)
        if user is None:
            self.logger.warning("Update failed: user %s not found", user_id)
            return Result.failure(ErrorKind.NOT_FOUND, "User not found.")

        changes = data.model_dump(exclude_unset=True, include=set(_UPDATABLE_FIELDS))
        for field, value in changes.items():
            if value is None and field in ("username", "email", "role"):
                continue
            if isinstance(value, UserRole):
                value = value.value
            setattr(user, field, value)
        user.modified_at = _utcnow()

        try:
            user = await self.repository.update(user)
        except DuplicateRecordError as exc:
            self.logger.warning("Update failed: duplicate %s for user %s", exc.field, user_id)
            return Result.failure(
                ErrorKind.ALREADY_EXISTS,
                _duplicate_message(exc.field, changes.get("username", ""), changes.get("email", "")),
            )

        self.logger.info("User %s updated (%s)", user_id, ", ".join(sorted(changes)) or "no fields")
        return Result.success(UserRead.model_validate(user))

    @_guarded("user deletion")
    async def delete_user(self, user_id: int) -> Result[bool]:
        if not await self.repository.delete(user_id):
            self.logger.warning("Delete failed: user %s not found", user_id)
            return Result.failure(ErrorKind.NOT_FOUND, "User not found.")
        self.logger.info("User %s deleted", user_id)
        return Result.success(True)

    @_guarded("user listing")
    async def list_users(
        self,
        page_number: int,
        page_size: int,
        filters: UserFilters | None = None,
    ) -> Result[PaginatedResult[UserRead]]:
        if page_number < 1 or page_size < 1 or page_size > self.max_page_size:
            self.logger.warning(
                "Listing rejected: page_number=%s page_size=%s", page_number, page_size
            )
            return Result.failure(
                ErrorKind.INVALID_ARGUMENT,
                f"page_number must be >= 1 and page_size between 1 and {self.max_page_size}.",
            )

        predicate = build_user_predicate(filters)
        rows, total = await self.repository.query_page(page_number, page_size, predicate)
        self.logger.info(
            "Listed %d of %d users (page %d, size %d)", len(rows), total, page_number, page_size
        )
        return Result.success(
            PaginatedResult[UserRead](
                data=[UserRead.model_validate(row) for row in rows],
                total_records=total,
                page_number=page_number,
                page_size=page_size,
            )
        )
