"""Axiom 로그 전송 프로세서 테스트."""

from types import SimpleNamespace

from handbook.observability.axiom_sink import AxiomSink


class FakeAxiomClient:
    def __init__(self, error: Exception | None = None) -> None:
        self.ingested: list[tuple[str, list[dict]]] = []
        self._error = error

    def ingest_events(self, dataset: str, events: list[dict]) -> None:
        if self._error is not None:
            raise self._error
        self.ingested.append((dataset, events))


class TestAxiomSink:
    """경고 이상 이벤트 전송 테스트."""

    def test_ships_warnings_only(self):
        client = FakeAxiomClient()
        sink = AxiomSink(client, "handbook-logs")

        sink(None, "info", {"event": "Record deleted"})
        sink(None, "warning", {"event": "Slow query detected", "elapsed_ms": 1500.0})

        assert len(client.ingested) == 1
        dataset, events = client.ingested[0]
        assert dataset == "handbook-logs"
        assert events[0]["event"] == "Slow query detected"
        assert events[0]["level"] == "warning"

    def test_masks_sensitive_params(self):
        """바인드 파라미터의 민감 필드 마스킹."""
        client = FakeAxiomClient()
        sink = AxiomSink(client, "handbook-logs")
        event = {"event": "Query execution failed", "params": {"api_key": "abc", "name_en": "Kasumi"}}

        returned = sink(None, "error", event)

        assert client.ingested[0][1][0]["params"] == {"api_key": "***", "name_en": "Kasumi"}
        assert returned is event
        assert event["params"]["api_key"] == "abc"

    def test_truncates_long_values(self):
        client = FakeAxiomClient()
        AxiomSink(client, "handbook-logs")(None, "warning", {"event": "x", "query": "S" * 5000})
        assert client.ingested[0][1][0]["query"].endswith("...(truncated)")

    def test_client_failure_is_swallowed(self):
        """전송 실패가 로깅 체인을 깨지 않음."""
        sink = AxiomSink(FakeAxiomClient(error=ConnectionError("axiom down")), "handbook-logs")
        event = {"event": "Long-running transactions detected"}
        assert sink(None, "warning", event) is event

    def test_not_configured(self):
        settings = SimpleNamespace(AXIOM_API_TOKEN=None, AXIOM_DATASET="handbook-logs")
        assert AxiomSink.from_settings(settings) is None
