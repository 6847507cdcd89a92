"""쿼리 성능 추적 테스트.

Query performance tracking tests — Fingerprints, stats store, N+1 detector
and the tracker that ties them together.
"""

from structlog.testing import capture_logs

from handbook.services.performance_tracker import (
    NPlusOneDetector,
    PerformanceTracker,
    QueryStatsStore,
    fingerprint_query,
    normalize_query,
)


class FakeClock:
    """수동으로 진행하는 시계 — seconds."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestFingerprint:
    """쿼리 지문 테스트."""

    def test_numeric_literals_share_fingerprint(self):
        """숫자 리터럴만 다른 쿼리는 같은 지문."""
        assert fingerprint_query("SELECT * FROM characters WHERE id = 1") == fingerprint_query(
            "select *   from characters\nwhere id = 42"
        )

    def test_string_literals_share_fingerprint(self):
        """문자열 리터럴만 다른 쿼리는 같은 지문."""
        assert fingerprint_query("SELECT * FROM items WHERE unique_key = 'a'") == fingerprint_query(
            "SELECT * FROM items WHERE unique_key = 'it''s b'"
        )

    def test_bind_markers_normalised(self):
        """바인드 마커 종류와 무관."""
        expected = "select * from items where id = ?"
        assert normalize_query("SELECT * FROM items WHERE id = :id") == expected
        assert normalize_query("SELECT * FROM items WHERE id = $1") == expected
        assert normalize_query("SELECT * FROM items WHERE id = %s") == expected
        assert normalize_query("SELECT * FROM items WHERE id = ?") == expected

    def test_in_lists_collapse(self):
        """IN 목록 길이와 무관."""
        assert normalize_query("SELECT * FROM items WHERE id IN (1, 2, 3)") == (
            "select * from items where id in (?)"
        )
        assert fingerprint_query("SELECT * FROM items WHERE id IN (1,2)") == fingerprint_query(
            "SELECT * FROM items WHERE id IN (7)"
        )

    def test_different_shapes_differ(self):
        """테이블이 다르면 다른 지문."""
        assert fingerprint_query("SELECT * FROM items WHERE id = 1") != fingerprint_query(
            "SELECT * FROM skills WHERE id = 1"
        )

    def test_column_names_with_digits_kept(self):
        """식별자 안의 숫자는 유지."""
        assert normalize_query("SELECT name_2 FROM t1") == "select name_2 from t1"

    def test_fingerprint_length(self):
        assert len(fingerprint_query("SELECT 1")) == 16


class TestQueryStatsStore:
    """통계 저장소 테스트."""

    def test_record_aggregates(self):
        """count / avg / min / max 누적."""
        store = QueryStatsStore()
        store.record("fp", "select ?", 10.0)
        stats = store.record("fp", "select ?", 30.0)
        assert stats.count == 2
        assert stats.total_time_ms == 40.0
        assert stats.avg_time_ms == 20.0
        assert stats.min_time_ms == 10.0
        assert stats.max_time_ms == 30.0
        assert stats.last_executed is not None

    def test_snapshot_sorted_by_average(self):
        """평균 시간 내림차순."""
        store = QueryStatsStore()
        store.record("fast", "a", 1.0)
        store.record("slow", "b", 50.0)
        store.record("mid", "c", 10.0)
        assert [s.fingerprint for s in store.snapshot()] == ["slow", "mid", "fast"]

    def test_returned_stats_are_copies(self):
        """반환된 통계를 수정해도 저장소는 불변."""
        store = QueryStatsStore()
        store.record("fp", "a", 5.0).count = 999
        assert store.get("fp").count == 1

    def test_prune_removes_stale(self):
        """보존 기간을 넘긴 항목만 제거."""
        clock = FakeClock()
        store = QueryStatsStore(clock=clock)
        store.record("old", "a", 1.0)
        clock.advance(3_000)
        store.record("new", "b", 1.0)
        clock.advance(1_000)
        assert store.prune(3_600) == 1
        assert store.get("old") is None
        assert store.get("new") is not None
        assert len(store) == 1


class TestNPlusOneDetector:
    """N+1 감지 테스트."""

    def test_third_repeat_warns_once(self):
        """윈도우 내 3번째 반복에서 한 번만 경고, 4번째는 재경고 없음."""
        clock = FakeClock()
        detector = NPlusOneDetector(window_ms=1000, threshold=3, clock=clock)
        with capture_logs() as logs:
            results = []
            for character_id in range(4):
                results.append(
                    detector.check(f"SELECT * FROM swimsuits WHERE character_id = {character_id}", "list")
                )
                clock.advance(0.1)
        assert results == [False, False, True, False]
        warnings = [log for log in logs if log["event"] == "Potential N+1 query pattern detected"]
        assert len(warnings) == 1
        assert warnings[0]["context"] == "list"
        assert warnings[0]["occurrences"] == 3

    def test_entries_outside_window_evicted(self):
        """윈도우 밖의 항목은 세지 않음."""
        clock = FakeClock()
        detector = NPlusOneDetector(window_ms=1000, threshold=3, clock=clock)
        for _ in range(5):
            assert detector.check("SELECT * FROM items WHERE id = 1") is False
            clock.advance(0.6)

    def test_contexts_isolated(self):
        """컨텍스트별로 따로 센다."""
        detector = NPlusOneDetector(window_ms=1000, threshold=3, clock=FakeClock())
        detector.check("SELECT * FROM items WHERE id = 1", "a")
        detector.check("SELECT * FROM items WHERE id = 2", "b")
        assert detector.check("SELECT * FROM items WHERE id = 3", "a") is False
        assert sorted(detector.active_contexts()) == ["a", "b"]

    def test_different_shapes_do_not_accumulate(self):
        detector = NPlusOneDetector(window_ms=1000, threshold=3, clock=FakeClock())
        assert not detector.check("SELECT * FROM items WHERE id = 1")
        assert not detector.check("SELECT * FROM skills WHERE id = 1")
        assert not detector.check("SELECT * FROM gachas WHERE id = 1")

    def test_empty_query_ignored(self):
        assert NPlusOneDetector().check("") is False


class TestPerformanceTracker:
    """추적기 테스트."""

    def test_track_updates_stats(self):
        """같은 형태의 실행은 하나의 통계로 집계."""
        tracker = PerformanceTracker(QueryStatsStore(), NPlusOneDetector(clock=FakeClock()))
        tracker.track("SELECT * FROM items WHERE id = 1", 4.0, "a")
        tracker.track("SELECT * FROM items WHERE id = 2", 6.0, "b")
        stats = tracker.get_performance_stats()
        assert len(stats) == 1
        assert stats[0].count == 2
        assert stats[0].avg_time_ms == 5.0
        assert stats[0].fingerprint == fingerprint_query("SELECT * FROM items WHERE id = 9")

    def test_slow_query_warning_includes_stats(self):
        """기준을 넘으면 통계와 함께 경고."""
        tracker = PerformanceTracker(QueryStatsStore(), NPlusOneDetector(), slow_threshold_ms=100)
        with capture_logs() as logs:
            tracker.track("SELECT * FROM items", 50, "a")
            tracker.track("SELECT * FROM items", 150, "b")
        slow = [log for log in logs if log["event"] == "Slow query detected"]
        assert len(slow) == 1
        assert slow[0]["stats"]["count"] == 2
        assert slow[0]["elapsed_ms"] == 150

    def test_track_never_raises(self):
        """저장소 오류가 호출자에게 전파되지 않음."""

        class BrokenStore(QueryStatsStore):
            def record(self, fingerprint, pattern, elapsed_ms):
                raise RuntimeError("store unavailable")

        tracker = PerformanceTracker(BrokenStore(), NPlusOneDetector())
        with capture_logs() as logs:
            assert tracker.track("SELECT 1", 1.0) is None
        assert any(log["event"] == "Query performance tracking failed" for log in logs)

    def test_record_timing_skips_detector(self):
        """트랜잭션 시간 기록은 N+1 감지에 들어가지 않음."""
        detector = NPlusOneDetector(clock=FakeClock())
        tracker = PerformanceTracker(QueryStatsStore(), detector)
        for _ in range(5):
            tracker.record_timing("transaction:a,b", 3.0)
        assert detector.active_contexts() == []
        assert tracker.get_performance_stats()[0].sample_query == "transaction:a,b"
        assert tracker.get_performance_stats()[0].count == 5

    def test_cleanup_uses_retention(self):
        """보존 기간을 넘긴 통계 정리."""
        clock = FakeClock()
        tracker = PerformanceTracker(QueryStatsStore(clock=clock), NPlusOneDetector(), retention_seconds=60)
        tracker.track("SELECT 1", 1.0)
        clock.advance(61)
        assert tracker.cleanup() == 1
        assert tracker.get_performance_stats() == []

    def test_reset(self):
        tracker = PerformanceTracker(QueryStatsStore(), NPlusOneDetector())
        tracker.track("SELECT 1", 1.0)
        tracker.reset()
        assert tracker.get_performance_stats() == []
