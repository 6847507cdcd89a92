"""가챠 관련 SQLAlchemy ORM 모델 정의.

Gacha SQLAlchemy ORM model definitions.

Tables:
    - gachas: 가챠 배너 (Gacha banners with a running window)
    - gacha_pools: 가챠별 배출 풀 (Items that can drop from a banner)
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from handbook.database import Base


class Gacha(Base):
    """가챠 배너 모델.

    Gacha banner model. A banner is active while ``start_date <= now <= end_date``.

    Attributes:
        gacha_subtype: 세부 분류 TRENDY/NOSTALGIC/BIRTHDAY/ANNIVERSARY/PAID/FREE/ETC
        start_date: 시작 시각 (Start time)
        end_date: 종료 시각 (End time)
    """

    __tablename__ = "gachas"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    unique_key: Mapped[str] = mapped_column(String(150), unique=True, nullable=False)
    name_jp: Mapped[str] = mapped_column(String(255), nullable=False)
    name_en: Mapped[str] = mapped_column(String(255), nullable=False)
    name_cn: Mapped[str] = mapped_column(String(255), nullable=False)
    name_tw: Mapped[str] = mapped_column(String(255), nullable=False)
    name_kr: Mapped[str] = mapped_column(String(255), nullable=False)
    gacha_subtype: Mapped[str] = mapped_column(String(20), nullable=False)
    game_version: Mapped[str | None] = mapped_column(String(30), nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class GachaPool(Base):
    """가챠 풀 항목 모델.

    One droppable entry of a banner. ``item_id`` points into swimsuits,
    bromides or items depending on ``pool_item_type``.
    """

    __tablename__ = "gacha_pools"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # 소속 가챠 FK — Parent banner (CASCADE)
    gacha_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("gachas.id", ondelete="CASCADE"), nullable=False
    )
    # 항목 종류 — SWIMSUIT, BROMIDE, ITEM
    pool_item_type: Mapped[str] = mapped_column(String(20), nullable=False)
    item_id: Mapped[int] = mapped_column(Integer, nullable=False)
    drop_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4), nullable=False)
    # 픽업 여부 — Rate-up item
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
