import math
from typing import Generic, List, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Pagination(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)


class PaginationMetadata(BaseModel):
    total_count: int
    current_page: int
    total_pages: int
    has_next: bool


class PaginatedResponse(BaseModel, Generic[T]):
    data: List[T]
    meta: PaginationMetadata


def get_pagination_metadata(
    total_count: int, current_page: int, limit: int
) -> PaginationMetadata:
    if limit == 0:
        limit = 10

    return PaginationMetadata(
        total_count=total_count,
        current_page=current_page,
        total_pages=math.ceil(total_count / limit),
        has_next=current_page < math.ceil(total_count / limit),
    )


def paginate(items: List[T], pagination: Pagination) -> PaginatedResponse[T]:
    start = (pagination.page - 1) * pagination.limit
    return PaginatedResponse(
        data=items[start : start + pagination.limit],
        meta=get_pagination_metadata(len(items), pagination.page, pagination.limit),
    )
