"""가챠 레포지토리 — 가챠 배너 및 풀 조회 쿼리.

Gacha Repository — Queries for gacha banners and their pools.
"""

from datetime import datetime, timezone
from typing import Any

from handbook.database import QueryGateway
from handbook.models.gacha import Gacha, GachaPool
from handbook.repositories.base import BaseRepository
from handbook.utils.pagination import Page, PaginationRequest


class GachaRepository(BaseRepository[Gacha]):
    """가챠 배너 테이블 레포지토리.

    Repository for gacha banners. ``start_date`` drives range queries and
    the default ordering.
    """

    def __init__(self) -> None:
        super().__init__(
            Gacha,
            search_fields=["name_en", "name_jp", "unique_key"],
            date_field="start_date",
        )

    async def find_active(
        self,
        gateway: QueryGateway,
        at: datetime | None = None,
        request: PaginationRequest | None = None,
    ) -> Page:
        """주어진 시각에 진행 중인 배너를 조회합니다.

        Retrieve banners running at ``at`` (now when omitted).

        Args:
            gateway: 쿼리 실행 게이트웨이 (Query execution gateway)
            at: 기준 시각, 기본은 현재 UTC (Reference time, default now UTC)
            request: 페이지네이션 요청 (Pagination request)

        Returns:
            Page: 진행 중인 배너 페이지 (Page of running banners)
        """
        moment: datetime = at or datetime.now(timezone.utc).replace(tzinfo=None)
        predicate: str = "start_date <= :at AND end_date >= :at"
        return await self.paginate(
            gateway,
            f"SELECT * FROM gachas WHERE {predicate}",
            f"SELECT COUNT(*) AS count FROM gachas WHERE {predicate}",
            request,
            {"at": moment},
        )


class GachaPoolRepository(BaseRepository[GachaPool]):
    """가챠 풀 테이블 레포지토리."""

    def __init__(self) -> None:
        super().__init__(GachaPool)

    async def find_by_gacha(
        self,
        gateway: QueryGateway,
        gacha_id: int,
        request: PaginationRequest | None = None,
        featured_only: bool = False,
    ) -> Page:
        """배너별 배출 풀을 조회합니다 — optionally rate-up items only."""
        predicate: str = "gacha_id = :gacha_id"
        params: dict[str, Any] = {"gacha_id": gacha_id}
        if featured_only:
            predicate += " AND is_featured = :is_featured"
            params["is_featured"] = True
        return await self.paginate(
            gateway,
            f"SELECT * FROM gacha_pools WHERE {predicate}",
            f"SELECT COUNT(*) AS count FROM gacha_pools WHERE {predicate}",
            request,
            params,
        )


# 싱글턴 인스턴스 — Singleton instances
gacha_repository: GachaRepository = GachaRepository()
gacha_pool_repository: GachaPoolRepository = GachaPoolRepository()
