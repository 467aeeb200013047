"""
Run context management with context variables.

A run is one load, refresh or mutation. Every log line emitted inside a run
carries its run_id, and a run started inside another (a load triggered by an
auto-refresh tick) also carries the outer run as parent_run_id.
"""

import contextvars
import logging
import time
import uuid
from typing import Optional

logger = logging.getLogger(__name__)

_current_run: contextvars.ContextVar[Optional["RunContext"]] = contextvars.ContextVar(
    "current_run", default=None
)


def current_run() -> Optional["RunContext"]:
    """The innermost active run, if any."""
    return _current_run.get()


def get_run_id() -> Optional[str]:
    """Get the current run ID from context."""
    run = _current_run.get()
    return run.run_id if run else None


def get_parent_run_id() -> Optional[str]:
    run = _current_run.get()
    return run.parent.run_id if run and run.parent else None


def generate_run_id(prefix: str = "run") -> str:
    """Generate a new run ID."""
    return f"{prefix}-{uuid.uuid4().hex[:16]}"


class RunContext:
    """
    Context manager for run-scoped operations.

    Usage:
        with RunContext(prefix="refresh") as ctx:
            logger.info("Refreshing timeline")
            # All logs within this block include ctx.run_id

    Nested contexts record the outer run as ``parent`` and restore it on
    exit. Each run logs its duration and outcome at DEBUG when it ends.
    """

    def __init__(self, run_id: Optional[str] = None, prefix: str = "run"):
        self.run_id = run_id or generate_run_id(prefix)
        self.prefix = prefix
        self.parent: Optional[RunContext] = None
        self.started_at: Optional[float] = None
        self.elapsed_ms: Optional[float] = None
        self._token: Optional[contextvars.Token] = None

    @property
    def path(self) -> str:
        """Run ids from the outermost run down to this one, joined by '/'."""
        if self.parent is None:
            return self.run_id
        return f"{self.parent.path}/{self.run_id}"

    def __enter__(self) -> "RunContext":
        self.parent = _current_run.get()
        self.started_at = time.perf_counter()
        self._token = _current_run.set(self)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.started_at is not None:
            self.elapsed_ms = (time.perf_counter() - self.started_at) * 1000
        outcome = "failed" if exc_type is not None else "finished"
        logger.debug(
            f"Run {outcome} in {self.elapsed_ms:.1f} ms",
            extra={"elapsed_ms": round(self.elapsed_ms or 0.0, 3), "outcome": outcome},
        )
        if self._token is not None:
            _current_run.reset(self._token)
            self._token = None
