"""캐릭터 SQLAlchemy ORM 모델 정의.

Character SQLAlchemy ORM model definition.

Tables:
    - characters: 캐릭터 기본 정보 (Basic character profile)
"""

from datetime import date

from sqlalchemy import Boolean, Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from handbook.database import Base


class Character(Base):
    """캐릭터 모델 — 다국어 이름과 프로필.

    Character model — Localised names and profile data.

    Attributes:
        id: 고유 식별자 (Auto-increment primary key)
        unique_key: 텍스트 고유 키, URL/API 용 (Immutable text key)
        name_jp / name_en / name_cn / name_tw / name_kr: 언어별 이름 (Localised names)
        birthday: 생일 (Date of birth)
        height: 키 cm (Height in cm)
        measurements: 쓰리 사이즈 (B/W/H)
        blood_type: 혈액형 (Blood type)
        voice_actor_jp: 성우 (Japanese voice actor)
        is_active: 게임 내 현역 여부 (Still active in the game)
        game_version: 추가된 게임 버전 (Game version the character was added in)
    """

    __tablename__ = "characters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # 텍스트 고유 키 — Immutable text identifier
    unique_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name_jp: Mapped[str] = mapped_column(String(100), nullable=False)
    name_en: Mapped[str] = mapped_column(String(100), nullable=False)
    name_cn: Mapped[str] = mapped_column(String(100), nullable=False)
    name_tw: Mapped[str] = mapped_column(String(100), nullable=False)
    name_kr: Mapped[str] = mapped_column(String(100), nullable=False)
    birthday: Mapped[date | None] = mapped_column(Date, nullable=True)
    height: Mapped[int | None] = mapped_column(Integer, nullable=True)
    measurements: Mapped[str | None] = mapped_column(String(20), nullable=True)
    blood_type: Mapped[str | None] = mapped_column(String(5), nullable=True)
    voice_actor_jp: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # 현역 여부 — Whether the character is still active in the game
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    game_version: Mapped[str | None] = mapped_column(String(30), nullable=True)
