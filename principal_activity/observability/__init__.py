"""
Observability module: structured logging and run IDs.

Usage:
    from principal_activity.observability import get_logger, RunContext

    logger = get_logger(__name__)

    with RunContext(prefix="refresh"):
        logger.info("Refreshing timeline", extra={"scope": "all"})
"""

from .context import RunContext, current_run, generate_run_id, get_parent_run_id, get_run_id
from .logging import HumanFormatter, JSONFormatter, configure_logging, get_logger

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "JSONFormatter",
    "HumanFormatter",
    # Context
    "RunContext",
    "generate_run_id",
    "current_run",
    "get_parent_run_id",
    "get_run_id",
]
