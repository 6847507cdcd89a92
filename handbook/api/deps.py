"""FastAPI 의존성 주입 모듈 — 데이터 접근 계층 컴포넌트 제공.

FastAPI dependency injection module — Data-access components.
The application composes one gateway, tracker, transaction manager and
monitor at startup and stores them on ``app.state``; these providers hand
them to endpoints. Tests replace them through ``app.dependency_overrides``.
"""

from fastapi import Request

from handbook.database import SqlAlchemyGateway
from handbook.services.performance_monitor import PerformanceMonitor
from handbook.services.performance_tracker import PerformanceTracker
from handbook.services.query_optimizer import QueryOptimizer, query_optimizer
from handbook.services.transaction_manager import TransactionManager


def get_gateway(request: Request) -> SqlAlchemyGateway:
    """쿼리 실행 게이트웨이 — Query execution gateway."""
    return request.app.state.gateway


def get_tracker(request: Request) -> PerformanceTracker:
    """쿼리 성능 추적기 — Query performance tracker."""
    return request.app.state.tracker


def get_transaction_manager(request: Request) -> TransactionManager:
    """트랜잭션 오케스트레이터 — Transaction orchestrator."""
    return request.app.state.transaction_manager


def get_monitor(request: Request) -> PerformanceMonitor:
    """성능 모니터 — Performance monitor."""
    return request.app.state.monitor


def get_optimizer() -> QueryOptimizer:
    return query_optimizer
