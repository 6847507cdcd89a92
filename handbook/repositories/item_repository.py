"""아이템 레포지토리 — 아이템 조회 쿼리.

Item Repository — Queries for the items table.
"""

from handbook.database import QueryGateway
from handbook.models.item import Item
from handbook.repositories.base import BaseRepository
from handbook.utils.pagination import Page, PaginationRequest


class ItemRepository(BaseRepository[Item]):
    """아이템 테이블 레포지토리."""

    def __init__(self) -> None:
        super().__init__(Item, search_fields=["name_en", "name_jp", "unique_key"])

    async def find_by_category(
        self,
        gateway: QueryGateway,
        item_category: str,
        request: PaginationRequest | None = None,
    ) -> Page:
        return await self.paginate(
            gateway,
            "SELECT * FROM items WHERE item_category = :item_category",
            "SELECT COUNT(*) AS count FROM items WHERE item_category = :item_category",
            request,
            {"item_category": item_category},
        )


# 싱글턴 인스턴스 — Singleton instance
item_repository: ItemRepository = ItemRepository()
