# app/utils/my_logging.py
"""Logging configuration"""
import logging
import sys
from contextvars import ContextVar
from typing import Optional

from app.config.settings import get_settings

# Set per request by the correlation id middleware
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")

_NOISY_LOGGERS = [
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "sqlalchemy.orm",
    "alembic",
    "httpx",
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
]


class CorrelationIdFilter(logging.Filter):
    """Stamp each record with the current request's correlation id"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = correlation_id_var.get()
        return True


def setup_logging(verbose: Optional[bool] = None):
    """Configure application logging

    verbose defaults to the DEBUG setting. When not verbose the service
    logs at LOG_LEVEL and the SQLAlchemy / uvicorn loggers are quietened.
    """
    settings = get_settings()
    if verbose is None:
        verbose = settings.DEBUG

    level = logging.DEBUG if verbose else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s",
        handlers=[handler],
        force=True,
    )

    if not verbose:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
