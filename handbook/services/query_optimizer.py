"""쿼리 최적화 서비스 — 검색/기간/조인 SQL 생성 및 튜닝 조언.

Query optimisation service.
Builds search, date-range and join SQL from structured input, returns the
curated index recommendations for the handbook tables, and analyses slow
queries into human-readable tuning suggestions.

Search policy:
    - 3자 미만 또는 단어 1개: 접두사 매칭 (``field LIKE 'word%'``), 필드 간 OR.
      Short or single-word terms use prefix matching so an index on the
      field can serve the lookup.
    - 여러 단어: 단어마다 필드 OR 그룹, 단어 간 AND, 부분 문자열 매칭.
      Multi-word terms require every word, each in at least one field,
      with substring matching.

All values travel as named bind parameters; only identifiers that pass the
identifier check are interpolated. Nothing here raises on bad input.
"""

from datetime import date, datetime
from typing import Any, Literal

import structlog
from pydantic import BaseModel

from handbook.utils.pagination import is_safe_identifier

logger = structlog.get_logger(__name__)

_SLOW_ANALYSIS_MS: float = 1000.0
_LOGGED_QUERY_LENGTH: int = 200


class SearchQuery(BaseModel):
    """검색 쿼리 빌더 결과 — data query, count query and bind params."""

    search_query: str
    count_query: str
    params: dict[str, Any]


class DateRangeQuery(BaseModel):
    """기간 쿼리 빌더 결과 — data query, count query and bind params."""

    query: str
    count_query: str
    params: dict[str, Any]


class JoinClause(BaseModel):
    """조인 절 정의.

    Attributes:
        table: 조인 대상 테이블 (Joined table, may carry an alias)
        type: 조인 종류 (INNER / LEFT / RIGHT)
        condition: ON 조건 (Hand-written ON condition)
    """

    table: str
    type: Literal["INNER", "LEFT", "RIGHT"] = "INNER"
    condition: str


def _where(predicates: list[str]) -> str:
    return f" WHERE {' AND '.join(predicates)}" if predicates else ""


def _bind(params: dict[str, Any], value: Any) -> str:
    """다음 빈 qN 이름으로 값을 바인드 — never overwrites a caller parameter."""
    n: int = 0
    while f"q{n}" in params:
        n += 1
    params[f"q{n}"] = value
    return f":q{n}"


def _safe_fields(fields: list[str]) -> list[str]:
    safe: list[str] = [f for f in fields if isinstance(f, str) and is_safe_identifier(f)]
    if len(safe) != len(fields):
        logger.warning("Dropped unsafe search fields", requested=fields, kept=safe)
    return safe


class QueryOptimizer:
    """SQL 조각 생성과 쿼리 튜닝 조언을 담당하는 서비스.

    Stateless service building SQL fragments and tuning advice.
    """

    def build_search_query(
        self,
        table: str,
        search_fields: list[str],
        raw_query: str | None,
        extra_predicate: str | None = None,
        extra_params: dict[str, Any] | None = None,
    ) -> SearchQuery:
        """검색어로 데이터/카운트 쿼리를 생성합니다.

        Build a search query and its count query.

        Args:
            table: 대상 테이블 (Target table)
            search_fields: 검색 대상 컬럼 목록 (Columns to match)
            raw_query: 사용자 검색어 (Raw user search term)
            extra_predicate: 추가 조건, AND 로 결합 (Caller predicate, ANDed in)
            extra_params: 추가 조건의 바인드 파라미터 (Binds for the extra predicate)

        Returns:
            SearchQuery: 검색 쿼리, 카운트 쿼리, 파라미터
        """
        params: dict[str, Any] = dict(extra_params or {})
        predicates: list[str] = [f"({extra_predicate})"] if extra_predicate else []

        fields: list[str] = _safe_fields(list(search_fields or []))
        term: str = (raw_query or "").strip()
        words: list[str] = term.split()

        if fields and words:
            if len(term) < 3 or len(words) == 1:
                # 접두사 매칭 — 인덱스 사용 가능 (prefix match keeps the index usable)
                pattern: str = f"{words[0] if len(words) == 1 else term}%"
                conditions: list[str] = []
                for field in fields:
                    conditions.append(f"{field} LIKE {_bind(params, pattern)}")
                predicates.append(" OR ".join(conditions) if not predicates else f"({' OR '.join(conditions)})")
            else:
                groups: list[str] = []
                for word in words:
                    conditions = []
                    for field in fields:
                        conditions.append(f"{field} LIKE {_bind(params, f'%{word}%')}")
                    groups.append(f"({' OR '.join(conditions)})")
                predicates.append(" AND ".join(groups))

        where: str = _where(predicates)
        return SearchQuery(
            search_query=f"SELECT * FROM {table}{where}",
            count_query=f"SELECT COUNT(*) AS count FROM {table}{where}",
            params=params,
        )

    def build_date_range_query(
        self,
        table: str,
        date_field: str,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
        extra_predicate: str | None = None,
        extra_params: dict[str, Any] | None = None,
    ) -> DateRangeQuery:
        """기간 조건 쿼리를 생성합니다 — 없는 경계는 조건에서 생략.

        Build a date-range query. Absent bounds are left out entirely.
        """
        params: dict[str, Any] = dict(extra_params or {})
        predicates: list[str] = [f"({extra_predicate})"] if extra_predicate else []

        if is_safe_identifier(date_field):
            if start is not None:
                predicates.append(f"{date_field} >= :start_date")
                params["start_date"] = start
            if end is not None:
                predicates.append(f"{date_field} <= :end_date")
                params["end_date"] = end
        else:
            logger.warning("Ignored unsafe date field", date_field=date_field)

        where: str = _where(predicates)
        return DateRangeQuery(
            query=f"SELECT * FROM {table}{where}",
            count_query=f"SELECT COUNT(*) AS count FROM {table}{where}",
            params=params,
        )

    def build_join_query(
        self,
        main_table: str,
        joins: list[JoinClause],
        select_fields: list[str] | None = None,
        where_predicate: str | None = None,
    ) -> str:
        """조인 쿼리를 생성합니다 — 조인 순서는 호출자가 지정한 그대로.

        Build a join query. Joins are emitted in caller order; no reordering.
        """
        parts: list[str] = [
            f"SELECT {', '.join(select_fields) if select_fields else f'{main_table}.*'}",
            f"FROM {main_table}",
        ]
        parts.extend(f"{j.type} JOIN {j.table} ON {j.condition}" for j in joins)
        if where_predicate:
            parts.append(f"WHERE {where_predicate}")
        return " ".join(parts)

    def recommend_indexes(self) -> list[str]:
        """핸드북 테이블에 권장되는 인덱스 정의 목록 (자동 적용하지 않음)."""
        return [
            # characters
            "CREATE INDEX idx_characters_search ON characters(name_en, name_jp, unique_key);",
            "CREATE INDEX idx_characters_active_birthday ON characters(is_active, birthday);",
            "CREATE INDEX idx_characters_game_version_active ON characters(game_version, is_active);",
            # swimsuits
            "CREATE INDEX idx_swimsuits_character_rarity ON swimsuits(character_id, rarity);",
            "CREATE INDEX idx_swimsuits_release_date ON swimsuits(release_date_gl);",
            "CREATE INDEX idx_swimsuits_search ON swimsuits(name_en, name_jp, unique_key);",
            "CREATE INDEX idx_swimsuits_stats ON swimsuits(total_stats_awakened DESC);",
            # gachas
            "CREATE INDEX idx_gachas_active_dates ON gachas(start_date, end_date);",
            "CREATE INDEX idx_gachas_subtype_dates ON gachas(gacha_subtype, start_date, end_date);",
            "CREATE INDEX idx_gachas_search ON gachas(name_en, name_jp, unique_key);",
            # gacha_pools
            "CREATE INDEX idx_gacha_pools_gacha_type ON gacha_pools(gacha_id, pool_item_type);",
            "CREATE INDEX idx_gacha_pools_item_type_id ON gacha_pools(pool_item_type, item_id);",
            "CREATE INDEX idx_gacha_pools_featured ON gacha_pools(gacha_id, is_featured);",
            # skills
            "CREATE INDEX idx_skills_category ON skills(skill_category);",
            "CREATE INDEX idx_skills_search ON skills(name_en, name_jp, unique_key);",
            # items
            "CREATE INDEX idx_items_category_rarity ON items(item_category, rarity);",
            "CREATE INDEX idx_items_search ON items(name_en, name_jp, unique_key);",
            # documents
            "CREATE INDEX idx_documents_published ON documents(is_published);",
            "CREATE INDEX idx_documents_type_updated ON documents(document_type, updated_at DESC);",
            "CREATE INDEX idx_documents_search ON documents(title_en, unique_key);",
            # shop_listings
            "CREATE INDEX idx_shop_listings_type_dates ON shop_listings(shop_type, start_date, end_date);",
            "CREATE INDEX idx_shop_listings_item ON shop_listings(item_id);",
            "CREATE INDEX idx_shop_listings_currency ON shop_listings(cost_currency_item_id);",
        ]

    def analyze_query_performance(self, query: str, elapsed_ms: float) -> list[str]:
        """느린 쿼리에 대한 튜닝 제안을 생성합니다.

        Produce tuning suggestions from the query text and its timing.
        """
        suggestions: list[str] = []
        text: str = (query or "").upper()

        if elapsed_ms > _SLOW_ANALYSIS_MS:
            suggestions.append("Query execution time is over 1 second - consider optimization")
        if "SELECT *" in text:
            suggestions.append("Avoid SELECT * - specify only needed columns")
        if "LIKE '%" in text or "LIKE \"%" in text:
            suggestions.append("Leading wildcard LIKE queries cannot use indexes - consider full-text search")
        if "ORDER BY" in text and "LIMIT" not in text:
            suggestions.append("ORDER BY without LIMIT can be expensive - consider pagination")
        if text.count(" JOIN ") >= 3:
            suggestions.append("Multiple JOINs detected - ensure proper indexing on join columns")
        if "DISTINCT" in text and "ORDER BY" in text:
            suggestions.append("DISTINCT with ORDER BY can be expensive - consider if both are necessary")
        return suggestions

    def log_slow_query(self, query: str, params: Any, elapsed_ms: float) -> list[str]:
        """느린 쿼리를 분석 결과와 함께 경고로 기록합니다."""
        suggestions: list[str] = self.analyze_query_performance(query, elapsed_ms)
        truncated: str = query[:_LOGGED_QUERY_LENGTH] + ("..." if len(query) > _LOGGED_QUERY_LENGTH else "")
        logger.warning(
            "Slow query detected",
            query=truncated,
            elapsed_ms=round(float(elapsed_ms), 2),
            param_count=len(params) if params else 0,
            suggestions=suggestions,
        )
        return suggestions


# 싱글턴 인스턴스 — Singleton instance
query_optimizer: QueryOptimizer = QueryOptimizer()
