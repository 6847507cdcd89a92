"""데이터베이스 엔진 및 쿼리 실행 게이트웨이 모듈.

Database engine and query execution gateway module.
Sets up the async SQLAlchemy engine and ORM base class,
and exposes the raw-SQL gateway every repository and the transaction
orchestrator run their statements through.

The gateway is the only place that touches a driver. Callers see plain
dict rows, a row count, and a connection object with explicit
begin/commit/rollback/release.
"""

import time
from typing import Any, Protocol

import structlog
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from handbook.config import settings
from handbook.lifecycle import Lifecycle
from handbook.services.performance_tracker import PerformanceTracker

logger = structlog.get_logger(__name__)

_LOGGED_QUERY_LENGTH: int = 100


def create_engine_from_settings(url: str | None = None) -> AsyncEngine:
    """설정값으로 비동기 엔진을 생성합니다.

    Create the async engine. The pool bounds concurrently checked-out
    connections; extra callers wait up to ``DB_POOL_TIMEOUT`` seconds.
    """
    return create_async_engine(
        url or settings.DATABASE_URL,
        echo=settings.DEBUG,
        # 커넥션 풀에서 꺼낸 연결의 유효성을 사전 확인 (Validates connections before use)
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
    )


# 비동기 데이터베이스 엔진 — Async database engine (asyncpg driver)
engine: AsyncEngine = create_engine_from_settings()


class Base(DeclarativeBase):
    """SQLAlchemy 선언적 베이스 클래스.

    Declarative base class for all ORM table declarations.
    Repositories derive their sortable-column allow-lists from these tables.
    """

    pass


# ---------------------------------------------------------------------------
# 쿼리 실행 게이트웨이 — Query execution gateway
# ---------------------------------------------------------------------------


class QueryResult(BaseModel):
    """쿼리 실행 결과.

    Attributes:
        rows: 결과 행 목록 (Rows as dicts; empty for statements without rows)
        rowcount: 영향받은 행 수 (Rows affected, as reported by the driver)
    """

    rows: list[dict[str, Any]] = []
    rowcount: int = 0


class GatewayConnection(Protocol):
    """트랜잭션용으로 획득한 단일 연결 인터페이스."""

    async def execute(self, sql: str, params: dict[str, Any] | None = None) -> QueryResult: ...

    async def set_isolation_level(self, level: str) -> None: ...

    async def begin(self) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    async def release(self) -> None: ...


class QueryGateway(Protocol):
    """풀 기반 쿼리 실행 인터페이스 — pooled, blocking-on-acquire."""

    async def execute(self, sql: str, params: dict[str, Any] | None = None) -> QueryResult: ...

    async def acquire_connection(self) -> GatewayConnection: ...


async def _run(
    conn: AsyncConnection,
    sql: str,
    params: dict[str, Any] | None,
    tracker: PerformanceTracker | None,
    context: str,
    detect_n_plus_one: bool = True,
) -> QueryResult:
    start: float = time.perf_counter()
    try:
        result = await conn.execute(text(sql), params or {})
    except Exception as exc:
        logger.error(
            "Query execution failed",
            query=sql[:_LOGGED_QUERY_LENGTH] + ("..." if len(sql) > _LOGGED_QUERY_LENGTH else ""),
            elapsed_ms=round((time.perf_counter() - start) * 1000, 2),
            param_count=len(params) if params else 0,
            error=str(exc),
        )
        raise

    rows: list[dict[str, Any]] = [dict(r._mapping) for r in result] if result.returns_rows else []
    elapsed_ms: float = (time.perf_counter() - start) * 1000
    if tracker is not None:
        tracker.track(sql, elapsed_ms, context, detect_n_plus_one)
    return QueryResult(rows=rows, rowcount=max(result.rowcount or 0, 0))


class SqlAlchemyConnection:
    """AsyncConnection 을 감싼 게이트웨이 연결.

    Gateway connection backed by a checked-out SQLAlchemy ``AsyncConnection``.
    """

    def __init__(self, conn: AsyncConnection, tracker: PerformanceTracker | None = None) -> None:
        self._conn: AsyncConnection = conn
        self._tracker: PerformanceTracker | None = tracker

    async def execute(self, sql: str, params: dict[str, Any] | None = None) -> QueryResult:
        # 통계만 기록 — stats only, no N+1 check on transaction connections
        return await _run(self._conn, sql, params, self._tracker, "transaction", detect_n_plus_one=False)

    async def set_isolation_level(self, level: str) -> None:
        # begin() 이전에 호출해야 함 — must be called before begin()
        await self._conn.execution_options(isolation_level=level)

    async def begin(self) -> None:
        await self._conn.begin()

    async def commit(self) -> None:
        await self._conn.commit()

    async def rollback(self) -> None:
        await self._conn.rollback()

    async def release(self) -> None:
        await self._conn.close()


class SqlAlchemyGateway(Lifecycle):
    """SQLAlchemy 비동기 엔진 기반 쿼리 실행 게이트웨이.

    Query execution gateway over an ``AsyncEngine``.
    Single statements run on a pooled connection that is returned right
    after; ``acquire_connection`` hands out a connection for a caller-driven
    transaction. Every execution is reported to the performance tracker.

    Attributes:
        engine: 비동기 엔진 (Async engine owning the pool)
        tracker: 성능 추적기 (Performance tracker, optional)
    """

    name: str = "database"

    def __init__(self, engine: AsyncEngine, tracker: PerformanceTracker | None = None) -> None:
        self.engine: AsyncEngine = engine
        self.tracker: PerformanceTracker | None = tracker

    async def execute(self, sql: str, params: dict[str, Any] | None = None) -> QueryResult:
        """단일 문장을 실행하고 결과를 반환합니다 (자동 커밋)."""
        async with self.engine.connect() as conn:
            result: QueryResult = await _run(conn, sql, params, self.tracker, "gateway")
            await conn.commit()
            return result

    async def acquire_connection(self) -> SqlAlchemyConnection:
        """트랜잭션용 연결을 획득합니다 — 풀이 가득 차면 대기.

        Check a connection out of the pool; waits while the pool is exhausted.
        The caller must ``release()`` it.
        """
        conn: AsyncConnection = await self.engine.connect()
        return SqlAlchemyConnection(conn, self.tracker)

    def pool_stats(self) -> dict[str, Any]:
        """커넥션 풀 상태 — Connection pool snapshot."""
        pool = self.engine.pool
        stats: dict[str, Any] = {"pool_class": type(pool).__name__, "status": pool.status()}
        for name in ("size", "checkedin", "checkedout", "overflow"):
            method = getattr(pool, name, None)
            if callable(method):
                stats[name] = method()
        return stats

    async def health_check(self) -> dict[str, Any]:
        """SELECT 1 로 응답 시간을 측정합니다 — Round-trip health check."""
        start: float = time.perf_counter()
        try:
            await self.execute("SELECT 1 AS health_check")
        except Exception as exc:
            return {
                "is_healthy": False,
                "response_time_ms": round((time.perf_counter() - start) * 1000, 2),
                "error": str(exc),
                "pool": self.pool_stats(),
            }
        return {
            "is_healthy": True,
            "response_time_ms": round((time.perf_counter() - start) * 1000, 2),
            "pool": self.pool_stats(),
        }

    async def initialize(self) -> None:
        """시작 시 연결 상태를 확인하고 기록합니다 (실패해도 시작은 계속)."""
        health: dict[str, Any] = await self.health_check()
        if health["is_healthy"]:
            logger.info("Database connection established", response_time_ms=health["response_time_ms"])
        else:
            logger.error("Database health check failed at startup", error=health.get("error"))

    async def shutdown(self) -> None:
        await self.close()

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine disposed")
