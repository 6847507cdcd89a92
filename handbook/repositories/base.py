"""기본 레포지토리 — 페이지네이션 쿼리 엔진과 범용 CRUD.

Base Repository — Paginated query engine and generic CRUD for all entity
repositories.

Every repository is bound to one ORM model. The model's table name is the
SQL target and its column set is the sort-column allow-list, so a sort
request can only ever name a real column of that table. Statements are
plain SQL with named binds, executed through the query gateway passed to
each call.

Usage:
    class SkillRepository(BaseRepository[Skill]):
        def __init__(self) -> None:
            super().__init__(Skill, search_fields=["name_en", "name_jp", "unique_key"])
"""

import asyncio
import time
from collections.abc import Callable
from datetime import date, datetime
from typing import Any, Generic, TypeVar

import structlog
from sqlalchemy import Boolean

from handbook.config import settings
from handbook.database import Base, QueryGateway, QueryResult
from handbook.services.query_optimizer import QueryOptimizer, query_optimizer
from handbook.utils.exceptions import DataAccessError, NotFoundError, ValidationError
from handbook.utils.pagination import (
    DEFAULT_SORT_COLUMN,
    Page,
    PaginationRequest,
    build_page,
    build_paginated_query,
    extract_count,
    normalize_request,
)

logger = structlog.get_logger(__name__)

# 제네릭 타입 변수 — SQLAlchemy 모델을 나타냄
# Generic type variable representing a SQLAlchemy model
ModelType = TypeVar("ModelType", bound=Base)

RowMapper = Callable[[dict[str, Any]], Any]


class BaseRepository(Generic[ModelType]):
    """제네릭 페이지네이션/CRUD 레포지토리.

    Generic repository providing pagination, lookup, search and date-range
    queries over one table.

    Attributes:
        model: SQLAlchemy 모델 클래스 (The SQLAlchemy model class)
        table_name: 대상 테이블 이름 (Target table)
        allowed_sort_columns: 정렬 허용 컬럼 (Sort allow-list, from the table columns)
        default_sort_column: 기본 정렬 컬럼 (Default sort column)
        search_fields: 검색 대상 컬럼 (Columns matched by ``search``)
        date_field: 기간 조회 기준 컬럼 (Column used by ``find_in_date_range``)
    """

    def __init__(
        self,
        model: type[ModelType],
        search_fields: list[str] | None = None,
        date_field: str | None = None,
        default_sort_column: str = DEFAULT_SORT_COLUMN,
        optimizer: QueryOptimizer | None = None,
    ) -> None:
        """레포지토리를 초기화합니다.

        Initialize the repository with a model class.

        Args:
            model: 이 레포지토리가 관리할 SQLAlchemy 모델 클래스
                   (SQLAlchemy model class this repository manages)
            search_fields: 검색 대상 컬럼 목록 (Searchable columns)
            date_field: 기간 조회 기준 컬럼 (Date column for range queries)
            default_sort_column: 기본 정렬 컬럼 (Default sort column)
            optimizer: 쿼리 빌더/분석기 (Query optimizer, defaults to the shared instance)
        """
        self.model: type[ModelType] = model
        self.table_name: str = model.__tablename__
        columns = model.__table__.columns
        self.allowed_sort_columns: frozenset[str] = frozenset(columns.keys())

        unknown: list[str] = [
            name for name in [*(search_fields or []), date_field, default_sort_column]
            if name is not None and name not in self.allowed_sort_columns
        ]
        if unknown:
            raise ValueError(f"{self.table_name} has no column(s) {unknown}")

        self.search_fields: list[str] = list(search_fields or [])
        self.date_field: str | None = date_field
        self.default_sort_column: str = default_sort_column
        self.optimizer: QueryOptimizer = optimizer or query_optimizer
        # 드라이버가 0/1 로 돌려주는 불리언 컬럼 — boolean columns some drivers return as 0/1
        self._boolean_columns: frozenset[str] = frozenset(
            c.name for c in columns if isinstance(c.type, Boolean)
        )

    def map_row(self, row: dict[str, Any]) -> dict[str, Any]:
        """결과 행을 API 형태로 변환합니다 — coerce boolean columns to ``bool``."""
        if not self._boolean_columns:
            return row
        return {
            key: bool(value) if key in self._boolean_columns and value is not None else value
            for key, value in row.items()
        }

    async def _execute(
        self,
        gateway: QueryGateway,
        sql: str,
        params: dict[str, Any] | None = None,
        message: str = "Query failed",
    ) -> QueryResult:
        try:
            return await gateway.execute(sql, params)
        except Exception as exc:
            logger.error(message, table=self.table_name, error=str(exc))
            raise DataAccessError(message, context={"table": self.table_name}) from exc

    async def paginate(
        self,
        gateway: QueryGateway,
        base_query: str,
        count_query: str,
        request: PaginationRequest | None = None,
        params: dict[str, Any] | None = None,
        row_mapper: RowMapper | None = None,
    ) -> Page:
        """데이터 쿼리와 카운트 쿼리를 동시에 실행해 한 페이지를 반환합니다.

        Run the page query and the count query concurrently and assemble one
        page. Both queries share ``params``; the count query must carry the
        same predicate as ``base_query``.

        Args:
            gateway: 쿼리 실행 게이트웨이 (Query execution gateway)
            base_query: ORDER BY 없는 기본 SELECT (Base SELECT without ordering)
            count_query: 같은 조건의 COUNT 쿼리 (COUNT query over the same predicate)
            request: 페이지네이션 요청, None 이면 기본값 (Pagination request)
            params: 바인드 파라미터 (Named bind parameters)
            row_mapper: 행 변환 함수, 기본은 ``map_row`` (Row transform)

        Returns:
            Page: 페이지 응답 (Page envelope)

        Raises:
            ValidationError: 잘못된 페이지/정렬 입력, I/O 전 (Bad input, before any I/O)
            DataAccessError: 쿼리 실패 (Either query failed; no partial page)
        """
        normalized: PaginationRequest = normalize_request(
            request, self.allowed_sort_columns, self.default_sort_column
        )
        paginated_query: str = build_paginated_query(base_query, normalized)
        bound: dict[str, Any] = dict(params or {})

        start: float = time.perf_counter()
        try:
            data_result, count_result = await asyncio.gather(
                gateway.execute(paginated_query, bound),
                gateway.execute(count_query, bound),
            )
        except Exception as exc:
            logger.error(
                "Paginated query failed",
                table=self.table_name,
                query=paginated_query[:200],
                error=str(exc),
            )
            raise DataAccessError(
                "Failed to fetch paginated results",
                context={"table": self.table_name, "query": paginated_query[:200]},
            ) from exc

        elapsed_ms: float = (time.perf_counter() - start) * 1000
        if elapsed_ms > settings.SLOW_QUERY_THRESHOLD_MS:
            self.optimizer.log_slow_query(paginated_query, bound, elapsed_ms)

        mapper: RowMapper = row_mapper or self.map_row
        data: list[Any] = [mapper(row) for row in data_result.rows]
        return build_page(data, normalized, extract_count(count_result.rows))

    async def find_all(
        self,
        gateway: QueryGateway,
        request: PaginationRequest | None = None,
    ) -> Page:
        """전체 레코드를 페이지 단위로 조회합니다."""
        return await self.paginate(
            gateway,
            f"SELECT * FROM {self.table_name}",
            f"SELECT COUNT(*) AS count FROM {self.table_name}",
            request,
        )

    async def find_by_id(self, gateway: QueryGateway, record_id: int) -> dict[str, Any]:
        """ID로 단일 레코드를 조회합니다.

        Raises:
            NotFoundError: 레코드 없음 (No row with that id)
        """
        result: QueryResult = await self._execute(
            gateway,
            f"SELECT * FROM {self.table_name} WHERE id = :id",
            {"id": record_id},
            "Failed to fetch record",
        )
        if not result.rows:
            raise NotFoundError(f"{self.table_name} record {record_id} not found")
        return self.map_row(result.rows[0])

    async def find_by_unique_key(self, gateway: QueryGateway, unique_key: str) -> dict[str, Any]:
        """텍스트 고유 키로 단일 레코드를 조회합니다.

        Raises:
            ValidationError: 테이블에 unique_key 컬럼 없음 (Table has no unique_key)
            NotFoundError: 레코드 없음 (No row with that key)
        """
        if "unique_key" not in self.allowed_sort_columns:
            raise ValidationError(f"{self.table_name} has no unique_key column", field="unique_key")
        result: QueryResult = await self._execute(
            gateway,
            f"SELECT * FROM {self.table_name} WHERE unique_key = :unique_key",
            {"unique_key": unique_key},
            "Failed to fetch record",
        )
        if not result.rows:
            raise NotFoundError(f"{self.table_name} record '{unique_key}' not found")
        return self.map_row(result.rows[0])

    async def exists(self, gateway: QueryGateway, record_id: int) -> bool:
        result: QueryResult = await self._execute(
            gateway,
            f"SELECT 1 AS found FROM {self.table_name} WHERE id = :id LIMIT 1",
            {"id": record_id},
            "Failed to check record existence",
        )
        return bool(result.rows)

    async def delete_by_id(self, gateway: QueryGateway, record_id: int) -> None:
        """ID로 레코드를 삭제합니다.

        Raises:
            NotFoundError: 삭제된 행 없음 (Nothing was deleted)
        """
        result: QueryResult = await self._execute(
            gateway,
            f"DELETE FROM {self.table_name} WHERE id = :id",
            {"id": record_id},
            "Failed to delete record",
        )
        if result.rowcount == 0:
            raise NotFoundError(f"{self.table_name} record {record_id} not found")
        logger.info("Record deleted", table=self.table_name, record_id=record_id)

    async def search(
        self,
        gateway: QueryGateway,
        query: str | None,
        request: PaginationRequest | None = None,
        extra_predicate: str | None = None,
        extra_params: dict[str, Any] | None = None,
    ) -> Page:
        """검색어로 레코드를 페이지 단위로 검색합니다.

        Search ``search_fields`` with the optimizer's prefix / multi-word
        policy and paginate the result.
        """
        built = self.optimizer.build_search_query(
            self.table_name, self.search_fields, query, extra_predicate, extra_params
        )
        return await self.paginate(gateway, built.search_query, built.count_query, request, built.params)

    async def find_in_date_range(
        self,
        gateway: QueryGateway,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
        request: PaginationRequest | None = None,
        extra_predicate: str | None = None,
        extra_params: dict[str, Any] | None = None,
    ) -> Page:
        """기준 날짜 컬럼의 기간으로 조회합니다.

        Raises:
            ValidationError: 날짜 컬럼이 없는 레포지토리 (Repository has no date field)
        """
        if self.date_field is None:
            raise ValidationError(f"{self.table_name} has no date field", field="date_field")
        built = self.optimizer.build_date_range_query(
            self.table_name, self.date_field, start, end, extra_predicate, extra_params
        )
        return await self.paginate(gateway, built.query, built.count_query, request, built.params)

    async def health_check(self, gateway: QueryGateway) -> dict[str, Any]:
        """테이블 접근 가능 여부를 확인합니다 — never raises."""
        errors: list[str] = []
        try:
            await gateway.execute(f"SELECT COUNT(*) AS count FROM {self.table_name}")
        except Exception as exc:
            errors.append(f"Failed to query {self.table_name}: {exc}")
        return {"is_healthy": not errors, "table_name": self.table_name, "errors": errors}
