"""
Structured Logging

structlog is configured once per process through configure_logging().
Events are snake_case names with ids passed as key/values, e.g.

    logger.info("transaction_created", user_id=1, transaction_id=7)

Nothing here persists an audit trail; records go to the standard
logging handlers as JSON lines.
"""

import logging
import sys

import structlog


_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Configure stdlib logging and structlog (idempotent)."""
    global _configured

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    logging.getLogger().setLevel(level.upper())

    if _configured:
        return

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str = "finnan", **initial_values):
    """Return a bound structlog logger."""
    return structlog.get_logger(name, **initial_values)
