from __future__ import annotations

import math
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    data: list[T]
    page_number: int
    page_size: int
    total_items: int
    total_pages: int

    @classmethod
    def build(cls, data: list, page_number: int, page_size: int, total_items: int) -> "Page":
        return cls(
            data=data,
            page_number=page_number,
            page_size=page_size,
            total_items=total_items,
            total_pages=math.ceil(total_items / page_size) if page_size else 0,
        )


def clamp_page(page_number: int, page_size: int, max_page_size: int) -> tuple[int, int]:
    """Normalise paging input: page >= 1, 1 <= size <= max."""
    return max(1, page_number), min(max_page_size, max(1, page_size))
