import math

from pydantic import BaseModel


# Pagination metadata: shared by every paginated list endpoint
class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    totalPages: int
    hasNextPage: bool
    hasPreviousPage: bool


def build_pagination(total: int, page: int, limit: int) -> Pagination:
    total_pages = math.ceil(total / limit) if limit else 0
    return Pagination(
        total=total,
        page=page,
        limit=limit,
        totalPages=total_pages,
        hasNextPage=page < total_pages,
        hasPreviousPage=page > 1,
    )


def clamp_limit(limit: int, max_limit: int) -> int:
    return max(1, min(limit, max_limit))


# Error responses
class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str
