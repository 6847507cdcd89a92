"""FastAPI 애플리케이션 엔트리포인트 — 컴포넌트 구성 및 라우터 등록.

FastAPI application entry point — Component composition and router registration.
Composes the query gateway, performance tracker, transaction manager and
performance monitor once, registers the lifecycle components, and mounts
the health check and diagnostics routes.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from handbook.api.deps import get_gateway
from handbook.config import settings
from handbook.database import SqlAlchemyGateway, engine
from handbook.lifecycle import LifecycleRegistry
from handbook.logging_config import setup_logging
from handbook.services.performance_monitor import PerformanceMonitor
from handbook.services.performance_tracker import performance_tracker
from handbook.services.transaction_manager import TransactionManager

# 컴포넌트 구성 — Component composition
gateway: SqlAlchemyGateway = SqlAlchemyGateway(engine, performance_tracker)
transaction_manager: TransactionManager = TransactionManager(gateway, performance_tracker)
monitor: PerformanceMonitor = PerformanceMonitor(
    performance_tracker,
    transaction_manager,
    pool_stats=gateway.pool_stats,
)

# 등록 순서대로 시작, 역순으로 종료 — started in order, stopped in reverse
lifecycle: LifecycleRegistry = LifecycleRegistry()
lifecycle.register(gateway)
lifecycle.register(monitor)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    try:
        await lifecycle.start_all()
        yield
    finally:
        await lifecycle.stop_all()


app: FastAPI = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)
app.state.gateway = gateway
app.state.tracker = performance_tracker
app.state.transaction_manager = transaction_manager
app.state.monitor = monitor

# CORS 미들웨어 — Cross-Origin Resource Sharing middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check(
    db: Annotated[SqlAlchemyGateway, Depends(get_gateway)],
) -> dict[str, Any]:
    """서버 및 데이터베이스 상태 확인 엔드포인트.

    Health check endpoint reporting database round-trip time and pool state.
    """
    database: dict[str, Any] = await db.health_check()
    return {"status": "ok" if database["is_healthy"] else "degraded", "database": database}


# ---------------------------------------------------------------------------
# 라우터 등록 — Router registration
# ---------------------------------------------------------------------------
from handbook.api.diagnostics import router as diagnostics_router  # noqa: E402

app.include_router(diagnostics_router, prefix="/api/v1/diagnostics", tags=["Diagnostics"])
