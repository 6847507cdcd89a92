"""API 패키지 — 진단용 HTTP 엔드포인트.

API package — Diagnostics HTTP endpoints and their dependency providers.
"""
