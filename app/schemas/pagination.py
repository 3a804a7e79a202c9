"""Generic paginated response envelope."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class PaginatedResult(BaseModel, Generic[T]):
    data: list[T]
    total_records: int
    page_number: int
    page_size: int
