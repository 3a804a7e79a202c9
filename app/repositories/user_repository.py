"""
User persistence gateway.

``UserRepository`` is the contract the service layer depends on;
``SqlAlchemyUserRepository`` implements it on an ``AsyncSession``.  Every
mutating call commits its own transaction, so there is no implicit
change tracking across calls.
"""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.services.predicates import UserPredicate

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Generic storage failure."""


class DuplicateRecordError(RepositoryError):
    """A unique constraint rejected the write.

    ``field`` is ``"username"`` or ``"email"`` when the backend reports which
    constraint fired, otherwise ``None``.
    """

    def __init__(self, field: str | None = None) -> None:
        super().__init__(f"Duplicate value for {field or 'a unique field'}")
        self.field = field


class UserRepository(Protocol):
    async def find_by_username(self, username: str) -> User | None: ...

    async def find_by_email(self, email: str) -> User | None: ...

    async def find_by_id(self, user_id: int) -> User | None: ...

    async def insert(self, user: User) -> User: ...

    async def update(self, user: User) -> User: ...

    async def delete(self, user_id: int) -> bool: ...

    async def query_page(
        self, page_number: int, page_size: int, predicate: UserPredicate
    ) -> tuple[list[User], int]: ...


def _field_from_name(name: str) -> str | None:
    for field in ("username", "email"):
        if name.endswith(f"_{field}") or name.endswith(f".{field}"):
            return field
    return None


def _duplicate_field(exc: IntegrityError) -> str | None:
    # asyncpg exposes the violated constraint ("ix_users_email"); SQLAlchemy's
    # adapter keeps the driver exception as __cause__ of exc.orig
    for candidate in (exc.orig, getattr(exc.orig, "__cause__", None)):
        name = getattr(candidate, "constraint_name", None)
        if name:
            return _field_from_name(name.lower())

    # sqlite: "UNIQUE constraint failed: users.email"
    message = str(exc.orig).lower()
    if "unique constraint failed:" in message:
        columns = message.split("unique constraint failed:", 1)[1]
        for column in columns.split(","):
            if (field := _field_from_name(column.strip())) is not None:
                return field
    return None


class SqlAlchemyUserRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _scalar_user(self, stmt) -> User | None:
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise RepositoryError("User lookup failed") from exc
        return result.scalar_one_or_none()

    async def find_by_username(self, username: str) -> User | None:
        return await self._scalar_user(select(User).where(User.username == username))

    async def find_by_email(self, email: str) -> User | None:
        return await self._scalar_user(select(User).where(User.email == email))

    async def find_by_id(self, user_id: int) -> User | None:
        return await self._scalar_user(select(User).where(User.id == user_id))

    async def _commit(self) -> None:
        try:
            await self._session.flush()
            await self._session.commit()
        except IntegrityError as exc:
            await self._session.rollback()
            raise DuplicateRecordError(_duplicate_field(exc)) from exc
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise RepositoryError("Commit failed") from exc

    async def insert(self, user: User) -> User:
        self._session.add(user)
        await self._commit()
        await self._session.refresh(user)
        return user

    async def update(self, user: User) -> User:
        self._session.add(user)
        await self._commit()
        await self._session.refresh(user)
        return user

    async def delete(self, user_id: int) -> bool:
        try:
            result = await self._session.execute(delete(User).where(User.id == user_id))
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise RepositoryError("Delete failed") from exc
        if result.rowcount == 0:
            await self._session.rollback()
            return False
        await self._commit()
        return True

    async def query_page(
        self, page_number: int, page_size: int, predicate: UserPredicate
    ) -> tuple[list[User], int]:
        where = predicate.to_clause()
        try:
            total = await self._session.scalar(
                select(func.count()).select_from(User).where(where)
            )
            result = await self._session.execute(
                select(User)
                .where(where)
                .order_by(User.id)
                .offset((page_number - 1) * page_size)
                .limit(page_size)
            )
        except SQLAlchemyError as exc:
            raise RepositoryError("User page query failed") from exc
        return list(result.scalars().all()), int(total or 0)
