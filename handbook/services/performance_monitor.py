"""데이터베이스 성능 모니터 — 주기적 통계 정리와 장기 트랜잭션 점검.

Database performance monitor.
A lifecycle component that wakes up every ``interval`` seconds to prune
stale query statistics, flag long-running transactions, snapshot the
connection pool and log threshold warnings. The last
``MAX_HISTORY_SIZE`` snapshots are kept for the diagnostics summary.
"""

import asyncio
from collections import deque
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import structlog
from pydantic import BaseModel

from handbook.config import settings
from handbook.lifecycle import Lifecycle
from handbook.services.performance_tracker import PerformanceTracker
from handbook.services.transaction_manager import TransactionManager

logger = structlog.get_logger(__name__)

MAX_HISTORY_SIZE: int = 1000
# 경고 기준 — Warning thresholds
POOL_USAGE_WARNING: float = 0.9
POOL_USAGE_RECOMMENDATION: float = 0.8
_TREND_WINDOW: int = 10


class PerformanceSnapshot(BaseModel):
    """한 번의 수집 결과.

    Attributes:
        taken_at: 수집 시각 UTC (Collection time)
        tracked_queries: 통계가 있는 쿼리 지문 수 (Fingerprints with stats)
        total_executions: 누적 실행 횟수 (Executions across all fingerprints)
        slow_queries: 평균이 기준을 넘는 지문 수 (Fingerprints slower than the threshold on average)
        pruned_stats: 이번 수집에서 정리된 항목 수 (Entries pruned in this sweep)
        active_transactions: 진행 중인 트랜잭션 수 (Open orchestrated transactions)
        long_running_transactions: 장기 트랜잭션 수 (Transactions over the threshold)
        pool: 커넥션 풀 상태 (Pool snapshot)
    """

    taken_at: datetime
    tracked_queries: int = 0
    total_executions: int = 0
    slow_queries: int = 0
    pruned_stats: int = 0
    active_transactions: int = 0
    long_running_transactions: int = 0
    pool: dict[str, Any] = {}

    @property
    def pool_usage(self) -> float:
        """체크아웃된 연결 비율 — checked-out share of the pool capacity."""
        capacity: int = int(self.pool.get("size") or 0) + max(int(self.pool.get("overflow") or 0), 0)
        if capacity <= 0:
            return 0.0
        return int(self.pool.get("checkedout") or 0) / capacity


class PerformanceSummary(BaseModel):
    current: PerformanceSnapshot | None = None
    trends: dict[str, float] | None = None
    recommendations: list[str] = []


class PerformanceMonitor(Lifecycle):
    """주기적으로 성능 지표를 수집하는 백그라운드 컴포넌트.

    Background component collecting performance metrics on a fixed interval.

    Attributes:
        tracker: 쿼리 성능 추적기 (Query performance tracker)
        transaction_manager: 트랜잭션 오케스트레이터 (Transaction orchestrator)
        interval: 수집 주기(초) (Collection interval in seconds)
    """

    name: str = "performance_monitor"

    def __init__(
        self,
        tracker: PerformanceTracker,
        transaction_manager: TransactionManager,
        pool_stats: Callable[[], dict[str, Any]] | None = None,
        interval: float = settings.MONITOR_INTERVAL_SECONDS,
        long_running_threshold_ms: float = settings.LONG_RUNNING_TRANSACTION_MS,
    ) -> None:
        self.tracker: PerformanceTracker = tracker
        self.transaction_manager: TransactionManager = transaction_manager
        self.interval: float = interval
        self.long_running_threshold_ms: float = long_running_threshold_ms
        self._pool_stats: Callable[[], dict[str, Any]] | None = pool_stats
        self._history: deque[PerformanceSnapshot] = deque(maxlen=MAX_HISTORY_SIZE)
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def initialize(self) -> None:
        if self.is_running:
            logger.warning("Performance monitor is already running")
            return
        self._task = asyncio.create_task(self._run(), name="performance-monitor")
        logger.info("Performance monitor started", interval_s=self.interval)

    async def shutdown(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Performance monitor stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.collect()
            except Exception as exc:
                logger.error("Performance collection failed", error=str(exc))

    def collect(self) -> PerformanceSnapshot:
        """지표를 한 번 수집하고 기록에 추가합니다.

        Run one sweep: prune stale stats, check long-running transactions,
        snapshot the pool, append to history and log threshold warnings.
        """
        pruned: int = self.tracker.cleanup()
        long_running = self.transaction_manager.check_long_running_transactions(
            self.long_running_threshold_ms
        )
        stats = self.tracker.get_performance_stats()

        snapshot = PerformanceSnapshot(
            taken_at=datetime.now(timezone.utc),
            tracked_queries=len(stats),
            total_executions=sum(s.count for s in stats),
            slow_queries=sum(1 for s in stats if s.avg_time_ms > self.tracker.slow_threshold_ms),
            pruned_stats=pruned,
            active_transactions=self.transaction_manager.get_active_transaction_stats().count,
            long_running_transactions=len(long_running),
            pool=self._pool_stats() if self._pool_stats is not None else {},
        )
        self._history.append(snapshot)
        self._check_thresholds(snapshot)
        return snapshot

    def _check_thresholds(self, snapshot: PerformanceSnapshot) -> None:
        if snapshot.pool_usage > POOL_USAGE_WARNING:
            logger.warning(
                "High database connection usage detected",
                usage_pct=round(snapshot.pool_usage * 100),
                pool=snapshot.pool,
            )
        if snapshot.slow_queries > 0:
            logger.warning(
                "Slow queries detected in monitoring period",
                slow_query_count=snapshot.slow_queries,
                tracked_queries=snapshot.tracked_queries,
            )

    def history(self, limit: int = 100) -> list[PerformanceSnapshot]:
        return list(self._history)[-limit:] if limit > 0 else []

    def clear_history(self) -> None:
        self._history.clear()
        logger.info("Performance history cleared")

    def summary(self) -> PerformanceSummary:
        """최근 지표, 추세, 권장 사항 — Latest snapshot, trends and recommendations."""
        if not self._history:
            return PerformanceSummary(recommendations=["No performance data available yet"])

        latest: PerformanceSnapshot = self._history[-1]
        recommendations: list[str] = []
        if latest.pool_usage > POOL_USAGE_RECOMMENDATION:
            recommendations.append("Consider increasing database connection pool size")
        if latest.slow_queries > 0:
            recommendations.append("Optimize slow queries - check query execution plans")
        if latest.long_running_transactions > 0:
            recommendations.append("Investigate long-running transactions holding connections")
        return PerformanceSummary(current=latest, trends=self._trends(), recommendations=recommendations)

    def _trends(self) -> dict[str, float] | None:
        # 최근 10개와 그 이전 10개 비교 — recent window vs the one before it
        history: list[PerformanceSnapshot] = list(self._history)
        recent = history[-_TREND_WINDOW:]
        older = history[-2 * _TREND_WINDOW:-_TREND_WINDOW]
        if len(recent) < _TREND_WINDOW or not older:
            return None

        def mean(values: list[float]) -> float:
            return sum(values) / len(values)

        return {
            "pool_usage_trend": mean([s.pool_usage for s in recent]) - mean([s.pool_usage for s in older]),
            "slow_query_trend": mean([s.slow_queries for s in recent]) - mean([s.slow_queries for s in older]),
            "data_points": float(len(recent)),
        }
