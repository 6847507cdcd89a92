"""아이템 SQLAlchemy ORM 모델 정의.

Item SQLAlchemy ORM model definition.
Items cover currencies, upgrade materials, consumables, gifts, accessories,
furniture and special items. Shop listings reference them both as the item
sold and as the currency paid.
"""

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from handbook.database import Base


class Item(Base):
    """아이템 모델."""

    __tablename__ = "items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    unique_key: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    name_jp: Mapped[str] = mapped_column(String(150), nullable=False)
    name_en: Mapped[str] = mapped_column(String(150), nullable=False)
    name_cn: Mapped[str] = mapped_column(String(150), nullable=False)
    name_tw: Mapped[str] = mapped_column(String(150), nullable=False)
    name_kr: Mapped[str] = mapped_column(String(150), nullable=False)
    description_en: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_description_en: Mapped[str | None] = mapped_column(Text, nullable=True)
    # 아이템 분류 — CURRENCY, UPGRADE_MATERIAL, CONSUMABLE, GIFT, ACCESSORY, FURNITURE, SPECIAL
    item_category: Mapped[str] = mapped_column(String(30), nullable=False)
    rarity: Mapped[str] = mapped_column(String(10), nullable=False)
    game_version: Mapped[str | None] = mapped_column(String(30), nullable=True)
