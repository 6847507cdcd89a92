"""스킬 SQLAlchemy ORM 모델 정의.

Skill SQLAlchemy ORM model definition.
"""

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from handbook.database import Base


class Skill(Base):
    """스킬 모델 — ACTIVE / PASSIVE / POTENTIAL 분류와 효과 타입."""

    __tablename__ = "skills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    unique_key: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    name_jp: Mapped[str] = mapped_column(String(150), nullable=False)
    name_en: Mapped[str] = mapped_column(String(150), nullable=False)
    name_cn: Mapped[str] = mapped_column(String(150), nullable=False)
    name_tw: Mapped[str] = mapped_column(String(150), nullable=False)
    name_kr: Mapped[str] = mapped_column(String(150), nullable=False)
    description_en: Mapped[str | None] = mapped_column(Text, nullable=True)
    # 스킬 분류 — Skill category (ACTIVE, PASSIVE, POTENTIAL)
    skill_category: Mapped[str] = mapped_column(String(20), nullable=False)
    # 효과 타입 — Effect type, e.g. "POW_UP"
    effect_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    game_version: Mapped[str | None] = mapped_column(String(30), nullable=True)
