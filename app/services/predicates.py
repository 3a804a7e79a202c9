"""
Translate a ``UserFilters`` set into a composable ``UserPredicate``.

A predicate can be evaluated against a ``User`` instance in memory
(``predicate(user)``) and rendered as a parameterised SQLAlchemy clause
(``predicate.to_clause()``) for the repository.  Clauses only ever receive
typed filter values, so user input never reaches the SQL text.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import and_, or_, true
from sqlalchemy.sql.elements import ColumnElement

from app.models.user import User, UserRole
from app.schemas.user import UserFilters

_LIKE_ESCAPE = "\\"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are always UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _like_pattern(needle: str) -> str:
    escaped = (
        needle.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def _contains(haystack: str | None, needle: str) -> bool:
    return haystack is not None and needle.lower() in haystack.lower()


class Clause:
    """A single field constraint."""

    def matches(self, user: User) -> bool:
        raise NotImplementedError

    def to_clause(self) -> ColumnElement[bool]:
        raise NotImplementedError


@dataclass(frozen=True)
class RoleEquals(Clause):
    role: UserRole

    def matches(self, user: User) -> bool:
        return UserRole(user.role) is self.role

    def to_clause(self) -> ColumnElement[bool]:
        return User.role == self.role.value


@dataclass(frozen=True)
class TextContains(Clause):
    """Case-insensitive substring match on one or more text columns (OR-ed)."""

    fields: tuple[str, ...]
    needle: str

    def matches(self, user: User) -> bool:
        return any(_contains(getattr(user, f), self.needle) for f in self.fields)

    def to_clause(self) -> ColumnElement[bool]:
        pattern = _like_pattern(self.needle)
        return or_(
            *(getattr(User, f).ilike(pattern, escape=_LIKE_ESCAPE) for f in self.fields)
        )


@dataclass(frozen=True)
class CreatedFrom(Clause):
    start: datetime

    def matches(self, user: User) -> bool:
        return _as_utc(user.created_at) >= _as_utc(self.start)

    def to_clause(self) -> ColumnElement[bool]:
        return User.created_at >= _as_utc(self.start)


@dataclass(frozen=True)
class CreatedTo(Clause):
    end: datetime

    def matches(self, user: User) -> bool:
        return _as_utc(user.created_at) <= _as_utc(self.end)

    def to_clause(self) -> ColumnElement[bool]:
        return User.created_at <= _as_utc(self.end)


@dataclass(frozen=True)
class UserPredicate:
    """Logical AND of clauses.  No clauses means every user matches."""

    clauses: tuple[Clause, ...] = ()

    def __call__(self, user: User) -> bool:
        return all(clause.matches(user) for clause in self.clauses)

    def __and__(self, other: UserPredicate) -> UserPredicate:
        return UserPredicate(self.clauses + other.clauses)

    def to_clause(self) -> ColumnElement[bool]:
        if not self.clauses:
            return true()
        return and_(*(clause.to_clause() for clause in self.clauses))


def _text(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def build_user_predicate(filters: UserFilters | None) -> UserPredicate:
    """Build the predicate for a filter set; blank or missing fields are skipped."""
    if filters is None:
        return UserPredicate()

    clauses: list[Clause] = []
    if filters.role is not None:
        clauses.append(RoleEquals(filters.role))
    if (username := _text(filters.username)) is not None:
        clauses.append(TextContains(("username",), username))
    if (email := _text(filters.email)) is not None:
        clauses.append(TextContains(("email",), email))
    if (name := _text(filters.name)) is not None:
        clauses.append(TextContains(("first_name", "last_name"), name))
    if filters.created_from is not None:
        clauses.append(CreatedFrom(filters.created_from))
    if filters.created_to is not None:
        clauses.append(CreatedTo(filters.created_to))
    return UserPredicate(tuple(clauses))
