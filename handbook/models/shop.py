"""상점 목록 SQLAlchemy ORM 모델 정의.

Shop listing SQLAlchemy ORM model definition.
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from handbook.database import Base


class ShopListing(Base):
    """상점 판매 항목 모델.

    Shop listing model — what is sold, in which shop, for which currency.

    Attributes:
        shop_type: 상점 종류 EVENT/VIP/GENERAL/CURRENCY (Shop type)
        item_id: 판매 아이템 FK (Item sold)
        cost_currency_item_id: 지불 재화 아이템 FK (Currency item paid)
        cost_amount: 가격 (Amount of currency)
        start_date: 판매 시작 (Sale start, optional)
        end_date: 판매 종료 (Sale end, optional)
    """

    __tablename__ = "shop_listings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    shop_type: Mapped[str] = mapped_column(String(20), nullable=False)
    item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=False
    )
    cost_currency_item_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=False
    )
    cost_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
