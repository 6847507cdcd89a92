"""진단 라우터 — 쿼리 통계, 진행 중 트랜잭션, 인덱스 권장, 성능 요약.

Diagnostics Router — Read-only views over the data-access layer's
introspection state. Mounted under ``/api/v1/diagnostics``.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from handbook.api.deps import get_monitor, get_optimizer, get_tracker, get_transaction_manager
from handbook.config import settings
from handbook.services.performance_monitor import PerformanceMonitor, PerformanceSummary
from handbook.services.performance_tracker import PerformanceTracker, QueryStats
from handbook.services.query_optimizer import QueryOptimizer
from handbook.services.transaction_manager import (
    ActiveTransaction,
    ActiveTransactionStats,
    TransactionManager,
)

router: APIRouter = APIRouter()


class TransactionDiagnostics(BaseModel):
    """진행 중 트랜잭션 진단 응답."""

    active: ActiveTransactionStats
    long_running: list[ActiveTransaction]
    threshold_ms: float


class IndexRecommendations(BaseModel):
    recommendations: list[str]


@router.get("/query-stats", response_model=list[QueryStats])
async def list_query_stats(
    tracker: Annotated[PerformanceTracker, Depends(get_tracker)],
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> list[QueryStats]:
    """쿼리 지문별 통계를 느린 순으로 조회합니다.

    List per-fingerprint query statistics, slowest average first.
    """
    return tracker.get_performance_stats()[:limit]


@router.get("/transactions", response_model=TransactionDiagnostics)
async def list_active_transactions(
    manager: Annotated[TransactionManager, Depends(get_transaction_manager)],
    threshold_ms: Annotated[float, Query(gt=0)] = settings.LONG_RUNNING_TRANSACTION_MS,
) -> TransactionDiagnostics:
    """진행 중인 트랜잭션과 장기 트랜잭션을 조회합니다."""
    return TransactionDiagnostics(
        active=manager.get_active_transaction_stats(),
        long_running=manager.check_long_running_transactions(threshold_ms),
        threshold_ms=threshold_ms,
    )


@router.get("/index-recommendations", response_model=IndexRecommendations)
async def list_index_recommendations(
    optimizer: Annotated[QueryOptimizer, Depends(get_optimizer)],
) -> IndexRecommendations:
    """핸드북 테이블 권장 인덱스 (적용하지 않음) — advisory only."""
    return IndexRecommendations(recommendations=optimizer.recommend_indexes())


@router.get("/summary", response_model=PerformanceSummary)
async def get_performance_summary(
    monitor: Annotated[PerformanceMonitor, Depends(get_monitor)],
) -> PerformanceSummary:
    """최근 성능 스냅샷과 권장 사항 — Latest snapshot, trends and recommendations."""
    return monitor.summary()
