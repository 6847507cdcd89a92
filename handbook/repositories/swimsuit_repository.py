"""수영복 레포지토리 — 수영복 조회 쿼리.

Swimsuit Repository — Queries for the swimsuits table.
"""

from handbook.database import QueryGateway
from handbook.models.swimsuit import Swimsuit
from handbook.repositories.base import BaseRepository
from handbook.utils.pagination import Page, PaginationRequest


class SwimsuitRepository(BaseRepository[Swimsuit]):
    """수영복 테이블 레포지토리 — release date drives range queries."""

    def __init__(self) -> None:
        super().__init__(
            Swimsuit,
            search_fields=["name_en", "name_jp", "unique_key"],
            date_field="release_date_gl",
        )

    async def find_by_character(
        self,
        gateway: QueryGateway,
        character_id: int,
        request: PaginationRequest | None = None,
    ) -> Page:
        """캐릭터별 수영복 목록을 조회합니다.

        Retrieve the swimsuits owned by one character.

        Args:
            gateway: 쿼리 실행 게이트웨이 (Query execution gateway)
            character_id: 캐릭터 ID (Character id)
            request: 페이지네이션 요청 (Pagination request)

        Returns:
            Page: 수영복 페이지 (Page of swimsuits)
        """
        return await self.paginate(
            gateway,
            "SELECT * FROM swimsuits WHERE character_id = :character_id",
            "SELECT COUNT(*) AS count FROM swimsuits WHERE character_id = :character_id",
            request,
            {"character_id": character_id},
        )


# 싱글턴 인스턴스 — Singleton instance
swimsuit_repository: SwimsuitRepository = SwimsuitRepository()
