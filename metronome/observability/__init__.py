"""
Observability module: structured logging and operation IDs.

Usage:
    from metronome.observability import get_logger, OperationContext

    logger = get_logger(__name__)

    with OperationContext(prefix="ref") as ctx:
        logger.info("Refresh started", extra={"year": 2025, "month": 3})
"""

from .context import (
    OperationContext,
    generate_operation_id,
    get_operation_id,
    set_operation_id,
)
from .logging import HumanFormatter, JSONFormatter, configure_logging, get_logger

__all__ = [
    "OperationContext",
    "generate_operation_id",
    "get_operation_id",
    "set_operation_id",
    "HumanFormatter",
    "JSONFormatter",
    "configure_logging",
    "get_logger",
]
