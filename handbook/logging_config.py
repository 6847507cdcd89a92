"""구조화 로깅 설정 모듈.

Structured logging configuration using structlog.
Every module logs through ``structlog.get_logger(__name__)`` with keyword
context; this module wires the processor chain once at startup.
"""

import logging
import sys

import structlog

from handbook.config import settings
from handbook.observability.axiom_sink import AxiomSink

_configured: bool = False


def setup_logging(force: bool = False) -> None:
    """structlog 및 표준 logging 을 설정합니다.

    Configure structlog and stdlib logging. Console rendering in DEBUG,
    JSON lines otherwise. When Axiom credentials are set, warning-level
    events are also shipped to Axiom.
    """
    global _configured
    if _configured and not force:
        return

    processors: list = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    # Axiom 전송 프로세서 — ships warnings before rendering
    sink: AxiomSink | None = AxiomSink.from_settings(settings)
    if sink is not None:
        processors.append(sink)

    processors.append(
        structlog.dev.ConsoleRenderer() if settings.DEBUG else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    )
    _configured = True
