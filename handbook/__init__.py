"""DOAXVV 핸드북 백엔드 — 관계형 데이터 접근 계층.

DOAXVV handbook backend — Relational data-access layer.
"""
