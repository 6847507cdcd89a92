"""쿼리 성능 추적 서비스 — 지문, 통계 저장소, N+1 감지.

Query performance tracking — fingerprints, the stats store and N+1 detection.

Every executed statement is reduced to its *shape*: literals and bind
markers become ``?``, ``IN`` lists collapse, whitespace and case are
normalised. The shape's hash (the fingerprint) keys the aggregated
statistics, so ``WHERE id = 1`` and ``WHERE id = 2`` count as one query.

The same shape, seen three times for one context inside a short window,
is reported once as a likely N+1 pattern and the context's window is
cleared so a single burst never alarms twice.

The stats store is an explicit object handed to the tracker, which lets
tests use an isolated instance instead of process-wide state.
"""

import hashlib
import re
import threading
import time
from collections import defaultdict, deque
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import structlog
from pydantic import BaseModel

from handbook.config import settings

logger = structlog.get_logger(__name__)

# 정규화 패턴 — Normalisation patterns (order matters: strings before numbers)
_STRING_LITERAL = re.compile(r"'(?:[^'\\]|\\.|'')*'")
_BIND_MARKER = re.compile(r"(?<![:\w]):[A-Za-z_]\w*|\$\d+|%s|%\([A-Za-z_]\w*\)s|\?")
_NUMBER_LITERAL = re.compile(r"(?<![\w.])-?\d+(?:\.\d+)?\b")
_IN_LIST = re.compile(r"\bin\s*\(\s*\?(?:\s*,\s*\?)*\s*\)", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")

DEFAULT_CONTEXT: str = "default"
_SAMPLE_LENGTH: int = 200


def normalize_query(query: str) -> str:
    """쿼리의 리터럴을 자리표시자로 바꾼 형태를 반환합니다.

    Return the shape of a query: literals and bind markers replaced with
    ``?``, IN lists collapsed, whitespace collapsed, lower-cased.
    """
    if not query:
        return ""
    pattern: str = _STRING_LITERAL.sub("?", query)
    pattern = _BIND_MARKER.sub("?", pattern)
    pattern = _NUMBER_LITERAL.sub("?", pattern)
    pattern = _IN_LIST.sub("in (?)", pattern)
    pattern = _WHITESPACE.sub(" ", pattern)
    return pattern.strip().lower()


def fingerprint_query(query: str) -> str:
    """정규화된 쿼리 형태의 안정적인 해시 (16자 hex)."""
    return hashlib.sha1(normalize_query(query).encode("utf-8")).hexdigest()[:16]


class QueryStats(BaseModel):
    """지문별 누적 쿼리 통계.

    Aggregated statistics for one query fingerprint.

    Attributes:
        fingerprint: 쿼리 지문 (Query fingerprint)
        sample_query: 정규화된 쿼리 앞부분 (Leading part of the normalised shape)
        count: 실행 횟수 (Executions)
        total_time_ms: 누적 실행 시간 (Total elapsed ms)
        avg_time_ms: 평균 실행 시간 (Mean elapsed ms)
        min_time_ms: 최소 실행 시간 (Fastest execution)
        max_time_ms: 최대 실행 시간 (Slowest execution)
        last_executed: 마지막 실행 시각 UTC (Last execution time)
    """

    fingerprint: str
    sample_query: str
    count: int = 0
    total_time_ms: float = 0.0
    avg_time_ms: float = 0.0
    min_time_ms: float = 0.0
    max_time_ms: float = 0.0
    last_executed: datetime | None = None


class QueryStatsStore:
    """쿼리 통계 저장소 — 원자적 갱신을 제공하는 주입 가능한 객체.

    Injectable statistics store. Each mutation holds a lock for the single
    entry update; readers get copies.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock: Callable[[], float] = clock
        self._lock: threading.Lock = threading.Lock()
        self._stats: dict[str, QueryStats] = {}

    def record(self, fingerprint: str, pattern: str, elapsed_ms: float) -> QueryStats:
        """실행 1회를 반영하고 갱신된 통계의 복사본을 반환합니다."""
        now: datetime = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        with self._lock:
            stats: QueryStats | None = self._stats.get(fingerprint)
            if stats is None:
                stats = QueryStats(
                    fingerprint=fingerprint,
                    sample_query=pattern[:_SAMPLE_LENGTH],
                    min_time_ms=elapsed_ms,
                    max_time_ms=elapsed_ms,
                )
                self._stats[fingerprint] = stats
            stats.count += 1
            stats.total_time_ms += elapsed_ms
            stats.avg_time_ms = stats.total_time_ms / stats.count
            stats.min_time_ms = min(stats.min_time_ms, elapsed_ms)
            stats.max_time_ms = max(stats.max_time_ms, elapsed_ms)
            stats.last_executed = now
            return stats.model_copy()

    def get(self, fingerprint: str) -> QueryStats | None:
        with self._lock:
            stats: QueryStats | None = self._stats.get(fingerprint)
            return stats.model_copy() if stats is not None else None

    def snapshot(self) -> list[QueryStats]:
        """평균 실행 시간 내림차순 통계 목록 — Copies sorted by average time, slowest first."""
        with self._lock:
            items: list[QueryStats] = [s.model_copy() for s in self._stats.values()]
        return sorted(items, key=lambda s: s.avg_time_ms, reverse=True)

    def prune(self, max_age_seconds: float) -> int:
        """보존 기간을 넘긴 항목을 제거하고 제거 개수를 반환합니다.

        Remove entries whose last execution is older than ``max_age_seconds``.
        """
        cutoff: float = self._clock() - max_age_seconds
        with self._lock:
            stale: list[str] = [
                fp for fp, s in self._stats.items()
                if s.last_executed is None or s.last_executed.timestamp() < cutoff
            ]
            for fp in stale:
                del self._stats[fp]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._stats.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._stats)


class NPlusOneDetector:
    """컨텍스트별 슬라이딩 윈도우 기반 N+1 패턴 감지기.

    Per-context sliding-window detector for repeated query shapes.
    Stale entries are evicted lazily on each check. Once a shape reaches
    ``threshold`` occurrences inside the window, one warning is logged and
    that context's window is reset.
    """

    def __init__(
        self,
        window_ms: float = settings.N_PLUS_ONE_WINDOW_MS,
        threshold: int = settings.N_PLUS_ONE_THRESHOLD,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_ms: float = window_ms
        self.threshold: int = threshold
        self._clock: Callable[[], float] = clock
        self._lock: threading.Lock = threading.Lock()
        self._windows: defaultdict[str, deque[tuple[str, float]]] = defaultdict(deque)

    def check(self, query: str, context: str | None = None) -> bool:
        """쿼리를 윈도우에 추가하고 N+1 경고 여부를 반환합니다.

        Append the query's shape to the context window and return True when
        this call raised the warning.
        """
        pattern: str = normalize_query(query)
        if not pattern:
            return False

        key: str = context or DEFAULT_CONTEXT
        now: float = self._clock()
        horizon: float = now - self.window_ms / 1000.0

        with self._lock:
            window: deque[tuple[str, float]] = self._windows[key]
            while window and window[0][1] < horizon:
                window.popleft()
            window.append((pattern, now))
            occurrences: int = sum(1 for p, _ in window if p == pattern)
            if occurrences < self.threshold:
                return False
            # 같은 버스트에 대한 중복 경고 방지 — reset so one burst alarms once
            del self._windows[key]

        logger.warning(
            "Potential N+1 query pattern detected",
            context=key,
            occurrences=occurrences,
            window_ms=self.window_ms,
            pattern=pattern[:_SAMPLE_LENGTH],
        )
        return True

    def active_contexts(self) -> list[str]:
        with self._lock:
            return [k for k, w in self._windows.items() if w]


class PerformanceTracker:
    """쿼리 실행 시간 추적기.

    Feeds every execution into the stats store and the N+1 detector and
    logs slow queries together with their current statistics.
    """

    def __init__(
        self,
        store: QueryStatsStore | None = None,
        detector: NPlusOneDetector | None = None,
        slow_threshold_ms: float = settings.SLOW_QUERY_THRESHOLD_MS,
        retention_seconds: float = settings.STATS_RETENTION_SECONDS,
    ) -> None:
        self.store: QueryStatsStore = store or QueryStatsStore()
        self.detector: NPlusOneDetector = detector or NPlusOneDetector()
        self.slow_threshold_ms: float = slow_threshold_ms
        self.retention_seconds: float = retention_seconds

    def track(
        self,
        query: str,
        elapsed_ms: float,
        context: str | None = None,
        detect_n_plus_one: bool = True,
    ) -> QueryStats | None:
        """실행 1회를 기록합니다 — 통계 갱신, N+1 검사, 느린 쿼리 경고 순.

        Record one execution: update stats, run the N+1 check unless
        ``detect_n_plus_one`` is False, then warn if the execution was slow.
        Never raises.
        """
        try:
            pattern: str = normalize_query(query)
            if not pattern:
                return None
            fingerprint: str = hashlib.sha1(pattern.encode("utf-8")).hexdigest()[:16]
            stats: QueryStats = self.store.record(fingerprint, pattern, float(elapsed_ms))

            if detect_n_plus_one:
                self.detector.check(query, context)

            if elapsed_ms > self.slow_threshold_ms:
                logger.warning(
                    "Slow query detected",
                    fingerprint=fingerprint,
                    context=context,
                    elapsed_ms=round(float(elapsed_ms), 2),
                    threshold_ms=self.slow_threshold_ms,
                    stats=stats.model_dump(mode="json"),
                )
            return stats
        except Exception as exc:
            # 통계 수집 실패가 쿼리 결과에 영향주지 않도록 — best effort only
            logger.error("Query performance tracking failed", error=str(exc))
            return None

    def record_timing(self, label: str, elapsed_ms: float) -> QueryStats | None:
        """쿼리가 아닌 작업(트랜잭션 등)의 시간을 통계에만 기록합니다.

        Record a timing under a fixed label. The label is not normalised and
        does not feed the N+1 detector.
        """
        if not label:
            return None
        fingerprint: str = hashlib.sha1(label.encode("utf-8")).hexdigest()[:16]
        return self.store.record(fingerprint, label, float(elapsed_ms))

    def get_performance_stats(self) -> list[QueryStats]:
        """지문별 통계 (느린 순) — Read-only statistics, slowest first."""
        return self.store.snapshot()

    def cleanup(self, max_age_seconds: float | None = None) -> int:
        """오래된 통계를 정리합니다 — Prune stale stats; returns removed count."""
        removed: int = self.store.prune(
            self.retention_seconds if max_age_seconds is None else max_age_seconds
        )
        if removed:
            logger.info("Pruned stale query statistics", removed=removed, remaining=len(self.store))
        return removed

    def reset(self) -> None:
        self.store.clear()


# 애플리케이션 기본 추적기 — Default tracker wired by the application
performance_tracker: PerformanceTracker = PerformanceTracker()
