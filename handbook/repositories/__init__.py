"""레포지토리 패키지 — 데이터베이스 쿼리 계층.

Repository package — Database query layer.
Each repository extends BaseRepository for pagination, lookup, search and
date-range queries and adds the entity-specific list queries.

Callers import the module-level singletons and pass a query gateway per
call:

    - ``character_repository``     (character_repository.py)
    - ``swimsuit_repository``      (swimsuit_repository.py)
    - ``skill_repository``         (skill_repository.py)
    - ``item_repository``          (item_repository.py)
    - ``gacha_repository``, ``gacha_pool_repository`` (gacha_repository.py)
    - ``shop_listing_repository``  (shop_listing_repository.py)
    - ``document_repository``      (document_repository.py)
"""
