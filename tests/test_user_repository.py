"""Tests for the SQLAlchemy user repository and its error translation."""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.repositories.user_repository import (
    DuplicateRecordError,
    SqlAlchemyUserRepository,
    _duplicate_field,
)
from conftest import create_user


class _UniqueViolation(Exception):
    """Stand-in for asyncpg's UniqueViolationError."""

    def __init__(self, message: str, constraint_name: str) -> None:
        super().__init__(message)
        self.constraint_name = constraint_name


class _AdaptedError(Exception):
    """Stand-in for SQLAlchemy's asyncpg adapter error wrapping the driver error."""


def _integrity_error(orig: Exception) -> IntegrityError:
    return IntegrityError("UPDATE users SET ...", {}, orig)


def test_duplicate_field_prefers_constraint_name():
    driver = _UniqueViolation(
        'duplicate key value violates unique constraint "ix_users_email" '
        "DETAIL: Key (email)=((username)@x.com) already exists.",
        constraint_name="ix_users_email",
    )
    assert _duplicate_field(_integrity_error(driver)) == "email"


def test_duplicate_field_reads_constraint_name_from_wrapped_driver_error():
    driver = _UniqueViolation("Key (username)=(bob) already exists.", "ix_users_username")
    adapted = _AdaptedError("<class 'asyncpg.exceptions.UniqueViolationError'>")
    adapted.__cause__ = driver
    assert _duplicate_field(_integrity_error(adapted)) == "username"


@pytest.mark.parametrize(
    "message,field",
    [
        ("UNIQUE constraint failed: users.username", "username"),
        ("UNIQUE constraint failed: users.email", "email"),
        ("NOT NULL constraint failed: users.email", None),
    ],
)
def test_duplicate_field_falls_back_to_sqlite_message(message, field):
    assert _duplicate_field(_integrity_error(Exception(message))) == field


@pytest.mark.asyncio
async def test_update_with_taken_email_raises_duplicate(db_session: AsyncSession):
    await create_user(db_session, "alice", email="a@x.com")
    bob = await create_user(db_session, "bob")
    repo = SqlAlchemyUserRepository(db_session)

    bob.email = "a@x.com"
    with pytest.raises(DuplicateRecordError) as info:
        await repo.update(bob)

    assert info.value.field == "email"
    reloaded = await repo.find_by_id(bob.id)
    assert reloaded.email == "bob@example.com"


@pytest.mark.asyncio
async def test_insert_with_taken_username_raises_duplicate(db_session: AsyncSession):
    await create_user(db_session, "alice")
    repo = SqlAlchemyUserRepository(db_session)

    with pytest.raises(DuplicateRecordError) as info:
        await repo.insert(User(username="alice", email="other@x.com", hashed_password="x"))

    assert info.value.field == "username"
