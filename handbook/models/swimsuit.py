"""수영복 SQLAlchemy ORM 모델 정의.

Swimsuit SQLAlchemy ORM model definition.

Tables:
    - swimsuits: 캐릭터별 수영복 (Swimsuits owned by a character)
"""

from datetime import date

from sqlalchemy import Boolean, Date, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from handbook.database import Base


class Swimsuit(Base):
    """수영복 모델 — 희귀도, 스탯 타입, 출시 정보.

    Swimsuit model — Rarity, main stat type and release data.

    Attributes:
        id: 고유 식별자 (Auto-increment primary key)
        character_id: 소유 캐릭터 FK (Owning character)
        unique_key: 텍스트 고유 키 (Immutable text key)
        rarity: 희귀도 N/R/SR/SSR/SSR+ (Rarity)
        suit_type: 주 스탯 POW/TEC/STM/APL/N/A (Main stat type)
        total_stats_awakened: 완전 각성 후 총 스탯 (Total stats fully awakened)
        has_malfunction: 말펑션 여부 (Has a malfunction effect)
        is_limited: 기간 한정 여부 (Time-limited)
        release_date_gl: 글로벌 출시일 (Global release date)
    """

    __tablename__ = "swimsuits"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # 소유 캐릭터 FK — Owning character (CASCADE: 캐릭터 삭제 시 함께 삭제)
    character_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("characters.id", ondelete="CASCADE"), nullable=False
    )
    unique_key: Mapped[str] = mapped_column(String(150), unique=True, nullable=False)
    name_jp: Mapped[str] = mapped_column(String(255), nullable=False)
    name_en: Mapped[str] = mapped_column(String(255), nullable=False)
    name_cn: Mapped[str] = mapped_column(String(255), nullable=False)
    name_tw: Mapped[str] = mapped_column(String(255), nullable=False)
    name_kr: Mapped[str] = mapped_column(String(255), nullable=False)
    description_en: Mapped[str | None] = mapped_column(Text, nullable=True)
    rarity: Mapped[str] = mapped_column(String(10), nullable=False)
    suit_type: Mapped[str] = mapped_column(String(10), nullable=False)
    total_stats_awakened: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    has_malfunction: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_limited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    release_date_gl: Mapped[date | None] = mapped_column(Date, nullable=True)
    game_version: Mapped[str | None] = mapped_column(String(30), nullable=True)
