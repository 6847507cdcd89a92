"""서비스 패키지 — 쿼리 최적화, 성능 추적, 트랜잭션 오케스트레이션.

Service package — Query optimisation, performance tracking and transaction
orchestration built on top of the query gateway.
"""
