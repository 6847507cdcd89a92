"""상점 목록 레포지토리 — 상점 판매 항목 조회 쿼리.

Shop Listing Repository — Queries for the shop_listings table.
"""

from handbook.database import QueryGateway
from handbook.models.shop import ShopListing
from handbook.repositories.base import BaseRepository
from handbook.utils.pagination import Page, PaginationRequest


class ShopListingRepository(BaseRepository[ShopListing]):
    """상점 목록 테이블 레포지토리."""

    def __init__(self) -> None:
        super().__init__(ShopListing, date_field="start_date")

    async def find_by_type(
        self,
        gateway: QueryGateway,
        shop_type: str,
        request: PaginationRequest | None = None,
    ) -> Page:
        """상점 종류(EVENT/VIP/GENERAL/CURRENCY)별 판매 항목을 조회합니다."""
        return await self.paginate(
            gateway,
            "SELECT * FROM shop_listings WHERE shop_type = :shop_type",
            "SELECT COUNT(*) AS count FROM shop_listings WHERE shop_type = :shop_type",
            request,
            {"shop_type": shop_type},
        )


# 싱글턴 인스턴스 — Singleton instance
shop_listing_repository: ShopListingRepository = ShopListingRepository()
