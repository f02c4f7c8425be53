"""
Structured logging setup.

Library modules only call `structlog.get_logger()`; the application root
calls `configure()` once.
"""

from __future__ import annotations

import logging

import structlog


def configure(*, json: bool = True, level: int = logging.INFO) -> None:
    """
    Install the storefront processor chain.

    Example:
        from storefront import log
        log.configure(json=False, level=logging.DEBUG)
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )


__all__ = ("configure",)
