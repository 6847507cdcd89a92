"""문서 SQLAlchemy ORM 모델 정의.

Document SQLAlchemy ORM model definition.
Guides, checklists and tutorials shown in the handbook.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from handbook.database import Base


class Document(Base):
    """문서 모델 — 가이드/체크리스트/튜토리얼.

    Attributes:
        unique_key: URL 용 고유 키 (Unique key used in URLs)
        title_en: 제목 (Title)
        summary_en: 요약 (Summary)
        document_type: 문서 종류 checklist/guide/tutorial (Document type)
        is_published: 공개 여부 (Published flag)
        created_at: 생성 일시 UTC (Creation timestamp)
        updated_at: 수정 일시 UTC (Last update timestamp)
    """

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    unique_key: Mapped[str] = mapped_column(String(150), unique=True, nullable=False)
    title_en: Mapped[str] = mapped_column(String(255), nullable=False)
    summary_en: Mapped[str | None] = mapped_column(Text, nullable=True)
    document_type: Mapped[str] = mapped_column(String(20), nullable=False, default="guide")
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # 생성 일시 — Record creation timestamp (UTC)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    # 수정 일시 — Last modification timestamp (UTC, auto-updated)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
