"""캐릭터 레포지토리 — 캐릭터 조회 쿼리.

Character Repository — Queries for the characters table.
"""

from handbook.database import QueryGateway
from handbook.models.character import Character
from handbook.repositories.base import BaseRepository
from handbook.utils.pagination import Page, PaginationRequest


class CharacterRepository(BaseRepository[Character]):
    """캐릭터 테이블에 대한 데이터베이스 쿼리를 담당하는 레포지토리.

    Repository handling database queries for the characters table.
    Searches every localised name plus the unique key.
    """

    def __init__(self) -> None:
        super().__init__(
            Character,
            search_fields=["name_en", "name_jp", "name_cn", "name_tw", "name_kr", "unique_key"],
            date_field="birthday",
        )

    async def find_active(
        self,
        gateway: QueryGateway,
        request: PaginationRequest | None = None,
    ) -> Page:
        """게임 내 현역 캐릭터만 조회합니다.

        Retrieve characters still active in the game.

        Args:
            gateway: 쿼리 실행 게이트웨이 (Query execution gateway)
            request: 페이지네이션 요청 (Pagination request)

        Returns:
            Page: 현역 캐릭터 페이지 (Page of active characters)
        """
        return await self.paginate(
            gateway,
            "SELECT * FROM characters WHERE is_active = :is_active",
            "SELECT COUNT(*) AS count FROM characters WHERE is_active = :is_active",
            request,
            {"is_active": True},
        )


# 싱글턴 인스턴스 — Singleton instance
character_repository: CharacterRepository = CharacterRepository()
