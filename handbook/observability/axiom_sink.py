"""Axiom 로그 전송 프로세서.

Axiom log shipping processor.
A structlog processor that forwards data-access warnings (slow queries,
N+1 patterns, long-running transactions, failed compensations) to an
Axiom dataset. Query parameters may carry user data, so sensitive keys are
masked and long values truncated before anything leaves the process.
"""

import re
from typing import Any

from axiom_py import Client as AxiomClient

# 마스킹 대상 필드 패턴 — Fields to mask in event payloads
_SENSITIVE_KEYS = re.compile(
    r"(password|passwd|secret|token|authorization|api_key|apikey|access_token|refresh_token|credential)",
    re.IGNORECASE,
)

# 전송 대상 로그 레벨 — Levels shipped to Axiom
_SHIPPED_LEVELS = {"warning", "error", "critical", "exception"}


def _mask_dict(data: Any, depth: int = 0) -> Any:
    """민감 필드 자동 마스킹 — Recursively mask sensitive fields in dicts/lists."""
    if depth > 5:
        return "..."
    if isinstance(data, dict):
        return {
            k: "***" if _SENSITIVE_KEYS.search(str(k)) else _mask_dict(v, depth + 1)
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [_mask_dict(item, depth + 1) for item in list(data)[:20]]
    return _truncate(data)


def _truncate(value: Any, max_len: int = 2000) -> Any:
    """로그 크기 제한 — Truncate large values to prevent oversized events."""
    if isinstance(value, str) and len(value) > max_len:
        return value[:max_len] + "...(truncated)"
    return value


class AxiomSink:
    """경고 이상 이벤트를 Axiom 에 전송하는 structlog 프로세서.

    structlog processor shipping warning-and-above events to Axiom.
    The event dict is passed through unchanged to the next processor.
    """

    def __init__(self, client: Any, dataset: str) -> None:
        self._client = client
        self._dataset: str = dataset

    @classmethod
    def from_settings(cls, settings: Any) -> "AxiomSink | None":
        """설정에 토큰과 데이터셋이 있을 때만 생성 — None when Axiom is not configured."""
        if not (settings.AXIOM_API_TOKEN and settings.AXIOM_DATASET):
            return None
        return cls(AxiomClient(token=settings.AXIOM_API_TOKEN), settings.AXIOM_DATASET)

    def build_event(self, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        """전송용 이벤트 구성 — Build the masked Axiom event."""
        event: dict[str, Any] = _mask_dict(dict(event_dict))
        event.setdefault("level", method_name)
        return event

    def __call__(self, logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        level: str = str(event_dict.get("level", method_name)).lower()
        if level not in _SHIPPED_LEVELS:
            return event_dict

        try:
            self._client.ingest_events(self._dataset, [self.build_event(method_name, event_dict)])
        except Exception:
            pass  # 로깅 실패가 쿼리 처리에 영향주지 않도록 — Never break a query on log failure
        return event_dict
