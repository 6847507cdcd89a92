"""테스트 인프라 — 임시 SQLite DB, 기록용 가짜 게이트웨이, httpx 클라이언트 픽스처.

Test infrastructure — Temporary SQLite DB, recording fake gateway and httpx
client fixtures.
The fake gateway records every statement and connection event so tests can
assert on exact SQL and on the begin/commit/rollback sequence. End-to-end
tests run the real SqlAlchemyGateway over a file-backed SQLite database
created fresh under ``tmp_path`` for each test.
"""

from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine

from handbook.api.deps import get_gateway, get_monitor, get_tracker, get_transaction_manager
from handbook.database import Base, QueryResult, SqlAlchemyGateway
from handbook.main import app
from handbook.models import *  # noqa: F401,F403 — register all models with metadata
from handbook.models import Character
from handbook.services.performance_monitor import PerformanceMonitor
from handbook.services.performance_tracker import NPlusOneDetector, PerformanceTracker, QueryStatsStore
from handbook.services.transaction_manager import TransactionManager


# ---------------------------------------------------------------------------
# 가짜 게이트웨이 — Recording fake gateway
# ---------------------------------------------------------------------------
class FakeConnection:
    """이벤트를 기록하는 가짜 트랜잭션 연결."""

    def __init__(self, gateway: "FakeGateway") -> None:
        self._gateway = gateway

    async def execute(self, sql: str, params: dict[str, Any] | None = None) -> QueryResult:
        return await self._gateway.execute(sql, params)

    async def set_isolation_level(self, level: str) -> None:
        self._gateway.events.append(f"isolation:{level}")

    async def begin(self) -> None:
        self._gateway.events.append("begin")

    async def commit(self) -> None:
        self._gateway.events.append("commit")

    async def rollback(self) -> None:
        self._gateway.events.append("rollback")

    async def release(self) -> None:
        self._gateway.events.append("release")


class FakeGateway:
    """SQL 조각별로 응답을 지정할 수 있는 기록용 게이트웨이.

    Rules are matched in registration order against the statement text;
    the first matching rule answers. Unmatched statements return an empty
    result.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.events: list[str] = []
        self._rules: list[tuple[str, Callable[[dict[str, Any]], bool] | None, Any]] = []

    def on(
        self,
        fragment: str,
        result: QueryResult | None = None,
        error: BaseException | None = None,
        when: Callable[[dict[str, Any]], bool] | None = None,
    ) -> None:
        self._rules.append((fragment, when, error if error is not None else result or QueryResult()))

    async def execute(self, sql: str, params: dict[str, Any] | None = None) -> QueryResult:
        bound: dict[str, Any] = dict(params or {})
        self.calls.append((sql, bound))
        self.events.append(f"execute:{sql}")
        for fragment, when, outcome in self._rules:
            if fragment in sql and (when is None or when(bound)):
                if isinstance(outcome, BaseException):
                    raise outcome
                return outcome
        return QueryResult()

    async def acquire_connection(self) -> FakeConnection:
        self.events.append("acquire")
        return FakeConnection(self)

    def statements(self, prefix: str) -> list[str]:
        """지정한 키워드로 시작하는 실행 문장 목록."""
        return [sql for sql, _ in self.calls if sql.lstrip().upper().startswith(prefix.upper())]


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


# ---------------------------------------------------------------------------
# 성능 추적기 — Isolated tracker per test
# ---------------------------------------------------------------------------
@pytest.fixture
def tracker() -> PerformanceTracker:
    """테스트마다 격리된 통계 저장소를 가진 추적기."""
    return PerformanceTracker(store=QueryStatsStore(), detector=NPlusOneDetector())


# ---------------------------------------------------------------------------
# SQLite 엔진 — File-backed SQLite per test
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """테스트용 async 엔진. 스키마를 생성합니다."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'handbook.db'}", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def gateway(engine: AsyncEngine, tracker: PerformanceTracker) -> SqlAlchemyGateway:
    return SqlAlchemyGateway(engine, tracker)


@pytest_asyncio.fixture
async def characters(engine: AsyncEngine) -> list[Character]:
    """캐릭터 25명을 생성합니다 — 3의 배수 ID 는 비활성."""
    async with AsyncSession(engine, expire_on_commit=False) as session:
        created: list[Character] = []
        for i in range(1, 26):
            character = Character(
                unique_key=f"character_{i:02d}",
                name_jp=f"キャラ{i:02d}",
                name_en=f"Character {i:02d}",
                name_cn=f"角色{i:02d}",
                name_tw=f"角色{i:02d}",
                name_kr=f"캐릭터{i:02d}",
                is_active=i % 3 != 0,
            )
            session.add(character)
            created.append(character)
        await session.commit()
        return created


# ---------------------------------------------------------------------------
# API 클라이언트 — httpx client with overridden components
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def transaction_manager(gateway: SqlAlchemyGateway, tracker: PerformanceTracker) -> TransactionManager:
    return TransactionManager(gateway, tracker, retry_base_delay=0.0)


@pytest_asyncio.fixture
async def monitor(
    gateway: SqlAlchemyGateway,
    tracker: PerformanceTracker,
    transaction_manager: TransactionManager,
) -> PerformanceMonitor:
    return PerformanceMonitor(tracker, transaction_manager, pool_stats=gateway.pool_stats)


@pytest_asyncio.fixture
async def client(
    gateway: SqlAlchemyGateway,
    tracker: PerformanceTracker,
    transaction_manager: TransactionManager,
    monitor: PerformanceMonitor,
) -> AsyncGenerator[AsyncClient, None]:
    """FastAPI 테스트 클라이언트 — 데이터 접근 컴포넌트를 오버라이드합니다."""
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_tracker] = lambda: tracker
    app.dependency_overrides[get_transaction_manager] = lambda: transaction_manager
    app.dependency_overrides[get_monitor] = lambda: monitor

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
