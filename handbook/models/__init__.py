"""SQLAlchemy ORM 모델 패키지 — 모든 핸드북 테이블의 중앙 임포트 지점.

SQLAlchemy ORM models package — Central import point for all handbook tables.
Importing from this package registers every table with ``Base.metadata``.
Repositories read each table's column set to build their sortable-column
allow-lists.

Modules:
    character: 캐릭터 (Characters)
    swimsuit: 수영복 (Swimsuits)
    skill: 스킬 (Skills)
    item: 아이템 (Items)
    gacha: 가챠 배너와 풀 (Gacha banners and pools)
    shop: 상점 목록 (Shop listings)
    document: 문서/가이드 (Documents and guides)
"""

from handbook.models.character import Character
from handbook.models.swimsuit import Swimsuit
from handbook.models.skill import Skill
from handbook.models.item import Item
from handbook.models.gacha import Gacha, GachaPool
from handbook.models.shop import ShopListing
from handbook.models.document import Document

__all__ = [
    "Character",
    "Swimsuit",
    "Skill",
    "Item",
    "Gacha", "GachaPool",
    "ShopListing",
    "Document",
]
