"""진단 API 테스트 — 헬스 체크, 쿼리 통계, 트랜잭션, 인덱스 권장, 성능 요약.

Diagnostics API tests — Health check, query statistics, active
transactions, index recommendations and the performance summary.
"""

from handbook.services.performance_monitor import PerformanceMonitor
from handbook.services.performance_tracker import PerformanceTracker

DIAGNOSTICS = "/api/v1/diagnostics"


class TestHealth:
    """헬스 체크 엔드포인트 테스트."""

    async def test_health_ok(self, client):
        """DB 왕복 성공 시 ok."""
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["database"]["is_healthy"] is True
        assert "pool_class" in body["database"]["pool"]

    async def test_health_degraded(self, client, gateway):
        """DB 실패 시 예외 없이 degraded 보고."""

        async def broken(sql, params=None):
            raise RuntimeError("database unavailable")

        gateway.execute = broken
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["database"]["error"] == "database unavailable"


class TestQueryStats:
    """쿼리 통계 엔드포인트 테스트."""

    async def test_slowest_first(self, client, tracker: PerformanceTracker):
        tracker.track("SELECT * FROM skills WHERE id = 1", 5.0)
        tracker.track("SELECT * FROM items WHERE id = 1", 50.0)
        tracker.track("SELECT * FROM items WHERE id = 2", 30.0)

        response = await client.get(f"{DIAGNOSTICS}/query-stats")
        assert response.status_code == 200
        stats = response.json()
        assert [s["count"] for s in stats] == [2, 1]
        assert stats[0]["sample_query"] == "select * from items where id = ?"
        assert stats[0]["avg_time_ms"] == 40.0

    async def test_limit(self, client, tracker: PerformanceTracker):
        for table in ("skills", "items", "gachas"):
            tracker.track(f"SELECT * FROM {table}", 1.0)
        response = await client.get(f"{DIAGNOSTICS}/query-stats", params={"limit": 2})
        assert len(response.json()) == 2

    async def test_limit_out_of_range(self, client):
        """limit 범위 밖은 422."""
        response = await client.get(f"{DIAGNOSTICS}/query-stats", params={"limit": 0})
        assert response.status_code == 422

    async def test_repository_queries_are_tracked(self, client, gateway, characters, tracker):
        """게이트웨이로 실행한 쿼리가 통계에 반영됨."""
        from handbook.repositories.character_repository import character_repository

        await character_repository.find_by_id(gateway, 1)
        await character_repository.find_by_id(gateway, 2)

        stats = (await client.get(f"{DIAGNOSTICS}/query-stats")).json()
        lookups = [s for s in stats if s["sample_query"] == "select * from characters where id = ?"]
        assert len(lookups) == 1
        assert lookups[0]["count"] == 2


class TestTransactions:
    """트랜잭션 진단 엔드포인트 테스트."""

    async def test_no_active_transactions(self, client):
        response = await client.get(f"{DIAGNOSTICS}/transactions")
        assert response.status_code == 200
        body = response.json()
        assert body["active"] == {"count": 0, "transactions": []}
        assert body["long_running"] == []

    async def test_threshold_must_be_positive(self, client):
        response = await client.get(f"{DIAGNOSTICS}/transactions", params={"threshold_ms": 0})
        assert response.status_code == 422


class TestIndexRecommendations:
    """인덱스 권장 엔드포인트 테스트."""

    async def test_recommendations(self, client):
        response = await client.get(f"{DIAGNOSTICS}/index-recommendations")
        assert response.status_code == 200
        recommendations = response.json()["recommendations"]
        assert recommendations
        assert all(r.startswith("CREATE INDEX ") for r in recommendations)


class TestSummary:
    """성능 요약 엔드포인트 테스트."""

    async def test_before_any_collection(self, client):
        """수집 전에는 데이터 없음 안내."""
        response = await client.get(f"{DIAGNOSTICS}/summary")
        assert response.status_code == 200
        body = response.json()
        assert body["current"] is None
        assert body["recommendations"] == ["No performance data available yet"]

    async def test_after_collection(self, client, monitor: PerformanceMonitor, tracker: PerformanceTracker):
        """느린 쿼리가 있으면 최적화 권장."""
        tracker.track("SELECT * FROM swimsuits ORDER BY total_stats_awakened DESC", 5000.0)
        monitor.collect()

        body = (await client.get(f"{DIAGNOSTICS}/summary")).json()
        assert body["current"]["slow_queries"] == 1
        assert body["current"]["tracked_queries"] == 1
        assert body["trends"] is None
        assert "Optimize slow queries - check query execution plans" in body["recommendations"]
