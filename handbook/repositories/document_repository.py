"""문서 레포지토리 — 가이드/체크리스트/튜토리얼 조회 쿼리.

Document Repository — Queries for the documents table.
"""

from typing import Any

from handbook.database import QueryGateway
from handbook.models.document import Document
from handbook.repositories.base import BaseRepository
from handbook.utils.pagination import Page, PaginationRequest


class DocumentRepository(BaseRepository[Document]):
    """문서 테이블 레포지토리.

    Repository handling database queries for the documents table.
    ``updated_at`` drives range queries.
    """

    def __init__(self) -> None:
        super().__init__(
            Document,
            search_fields=["title_en", "unique_key", "summary_en"],
            date_field="updated_at",
        )

    async def find_published(
        self,
        gateway: QueryGateway,
        document_type: str | None = None,
        request: PaginationRequest | None = None,
    ) -> Page:
        """공개된 문서를 조회합니다 — 문서 종류 필터 선택.

        Retrieve published documents, optionally of one type.

        Args:
            gateway: 쿼리 실행 게이트웨이 (Query execution gateway)
            document_type: 문서 종류 checklist/guide/tutorial (Optional type filter)
            request: 페이지네이션 요청 (Pagination request)

        Returns:
            Page: 공개 문서 페이지 (Page of published documents)
        """
        predicate: str = "is_published = :is_published"
        params: dict[str, Any] = {"is_published": True}
        if document_type is not None:
            predicate += " AND document_type = :document_type"
            params["document_type"] = document_type
        return await self.paginate(
            gateway,
            f"SELECT * FROM documents WHERE {predicate}",
            f"SELECT COUNT(*) AS count FROM documents WHERE {predicate}",
            request,
            params,
        )


# 싱글턴 인스턴스 — Singleton instance
document_repository: DocumentRepository = DocumentRepository()
