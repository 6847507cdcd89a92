"""스킬 레포지토리 — 스킬 조회 쿼리.

Skill Repository — Queries for the skills table.
"""

from handbook.database import QueryGateway
from handbook.models.skill import Skill
from handbook.repositories.base import BaseRepository
from handbook.utils.pagination import Page, PaginationRequest


class SkillRepository(BaseRepository[Skill]):
    """스킬 테이블 레포지토리."""

    def __init__(self) -> None:
        super().__init__(Skill, search_fields=["name_en", "name_jp", "unique_key"])

    async def find_by_category(
        self,
        gateway: QueryGateway,
        skill_category: str,
        request: PaginationRequest | None = None,
    ) -> Page:
        """분류(ACTIVE/PASSIVE/POTENTIAL)별 스킬을 조회합니다."""
        return await self.paginate(
            gateway,
            "SELECT * FROM skills WHERE skill_category = :skill_category",
            "SELECT COUNT(*) AS count FROM skills WHERE skill_category = :skill_category",
            request,
            {"skill_category": skill_category},
        )


# 싱글턴 인스턴스 — Singleton instance
skill_repository: SkillRepository = SkillRepository()
