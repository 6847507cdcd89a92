"""관측성 패키지 — 로그 전송 프로세서.

Observability package — log shipping processors.
"""
