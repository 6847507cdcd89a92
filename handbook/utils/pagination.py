"""페이지네이션 유틸리티 모듈.

Pagination utility module for raw-SQL repositories.
Provides the request/response models, request normalisation and the
ORDER BY / LIMIT / OFFSET suffix builder shared by every list endpoint.

The sort column is the only identifier that reaches SQL from user input,
so it is always stripped to ``[A-Za-z0-9_]`` and then checked against the
caller's allow-list before interpolation.
"""

import math
import re
from collections.abc import Collection
from typing import Any

from pydantic import BaseModel

from handbook.utils.exceptions import ValidationError

DEFAULT_PAGE: int = 1
DEFAULT_LIMIT: int = 10
MAX_LIMIT: int = 100
DEFAULT_SORT_COLUMN: str = "id"
SORT_DIRECTIONS: tuple[str, ...] = ("ASC", "DESC")

# 식별자 허용 문자 외의 모든 문자 — Everything outside the identifier alphabet
_UNSAFE_IDENTIFIER_CHARS = re.compile(r"[^A-Za-z0-9_]")
# 단순/한정 식별자 패턴 (table.column 허용) — Plain or table-qualified identifier
_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


class PaginationRequest(BaseModel):
    """페이지네이션 요청 모델.

    Pagination request. Values are validated by ``normalize_request`` rather
    than by field constraints so that bad input raises the data-access
    ``ValidationError`` instead of a pydantic error.

    Attributes:
        page: 요청 페이지 번호, 1부터 시작 (Page number, 1-indexed)
        limit: 페이지당 항목 수 (Items per page, 1..100)
        sort_column: 정렬 컬럼 (Sort column, sanitised before use)
        sort_direction: 정렬 방향 ASC/DESC (Sort direction, case-insensitive)
    """

    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    sort_column: str | None = None
    sort_direction: str = "ASC"


class Page(BaseModel):
    """페이지네이션 결과 모델.

    Pagination result envelope.

    Attributes:
        data: 현재 페이지 항목 목록 (Items for the current page)
        page: 현재 페이지 번호 (Current page number, 1-based)
        limit: 페이지당 항목 수 (Items per page)
        total: 전체 항목 수 (Total count from the count query)
        total_pages: 전체 페이지 수 (ceil(total / limit))
        has_next: 다음 페이지 존재 여부 (page < total_pages)
        has_prev: 이전 페이지 존재 여부 (page > 1)
    """

    data: list[Any]
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


def sanitize_identifier(value: str) -> str:
    """식별자에서 허용되지 않는 문자를 제거합니다.

    Strip every character outside ``[A-Za-z0-9_]``.
    """
    return _UNSAFE_IDENTIFIER_CHARS.sub("", value)


def is_safe_identifier(value: str) -> bool:
    """단순 또는 테이블 한정 식별자인지 확인합니다 — ``name`` or ``table.name``."""
    return bool(_IDENTIFIER_PATTERN.match(value))


def resolve_sort_column(
    requested: str | None,
    allowed_columns: Collection[str] | None = None,
    default_column: str = DEFAULT_SORT_COLUMN,
) -> str:
    """요청된 정렬 컬럼을 안전한 식별자로 변환합니다.

    Resolve the requested sort column to a safe identifier.

    The value is stripped to the identifier alphabet first. An empty result
    falls back to ``default_column``. When ``allowed_columns`` is given the
    stripped name must be one of them.

    Raises:
        ValidationError: 허용 목록에 없는 컬럼 (Column not in the allow-list)
    """
    if requested is None:
        return default_column

    column: str = sanitize_identifier(requested)
    if not column:
        return default_column

    if allowed_columns is not None and column not in allowed_columns:
        raise ValidationError(f"Cannot sort by '{column}'", field="sort_column")
    return column


def normalize_request(
    request: PaginationRequest | None,
    allowed_columns: Collection[str] | None = None,
    default_column: str = DEFAULT_SORT_COLUMN,
) -> PaginationRequest:
    """페이지네이션 요청을 검증하고 기본값을 채웁니다.

    Validate a pagination request and fill in defaults.
    Returns a new request whose sort column and direction are safe to
    interpolate into SQL.

    Raises:
        ValidationError: page < 1, limit 범위 밖, 알 수 없는 정렬 방향
            (page < 1, limit out of range, unknown direction, disallowed column)
    """
    if request is None:
        request = PaginationRequest()

    if request.page < 1:
        raise ValidationError("page must be >= 1", field="page")
    if not 1 <= request.limit <= MAX_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}", field="limit")

    direction: str = (request.sort_direction or "ASC").upper()
    if direction not in SORT_DIRECTIONS:
        raise ValidationError("sort_direction must be ASC or DESC", field="sort_direction")

    return PaginationRequest(
        page=request.page,
        limit=request.limit,
        sort_column=resolve_sort_column(request.sort_column, allowed_columns, default_column),
        sort_direction=direction,
    )


def build_paginated_query(base_query: str, request: PaginationRequest) -> str:
    """기본 쿼리에 ORDER BY / LIMIT / OFFSET 을 덧붙입니다.

    Append ``ORDER BY <column> <DIR> LIMIT <limit> OFFSET <offset>`` to the
    base query. ``request`` must already be normalised.
    """
    # 정규화를 거쳤더라도 보간 직전에 한 번 더 제거 — strip again right before interpolation
    column: str = sanitize_identifier(request.sort_column or DEFAULT_SORT_COLUMN) or DEFAULT_SORT_COLUMN
    direction: str = "DESC" if request.sort_direction.upper() == "DESC" else "ASC"
    offset: int = (request.page - 1) * request.limit
    return f"{base_query.rstrip()} ORDER BY {column} {direction} LIMIT {int(request.limit)} OFFSET {int(offset)}"


def build_page(data: list[Any], request: PaginationRequest, total: int) -> Page:
    """결과 행과 전체 개수로 페이지 응답을 조립합니다.

    Assemble the page envelope. ``data`` is truncated to ``limit`` so the
    envelope never carries more rows than requested.
    """
    total_pages: int = math.ceil(total / request.limit) if total > 0 else 0
    return Page(
        data=list(data[: request.limit]),
        page=request.page,
        limit=request.limit,
        total=total,
        total_pages=total_pages,
        has_next=request.page < total_pages,
        has_prev=request.page > 1,
    )


def extract_count(rows: list[dict[str, Any]]) -> int:
    """카운트 쿼리 첫 행에서 개수를 읽습니다.

    Read the count from the first row of a count query: the ``count`` key,
    then ``COUNT(*)``, then the first column. No row means 0.
    """
    if not rows:
        return 0
    row: dict[str, Any] = rows[0]
    for key in ("count", "COUNT(*)"):
        if row.get(key) is not None:
            return int(row[key])
    first: Any = next(iter(row.values()), None)
    return int(first or 0)
