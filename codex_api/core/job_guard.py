"""
Job Guard

Non-reentrant run guard for scheduled jobs. A trigger that arrives while the
previous run of the same job is still in progress is skipped instead of
running concurrently with it.

Usage:
    guard = JobGuard("price_sync")
    result = await guard.run(run_price_sync_job, stores, settings)
    if result["status"] == "skipped":
        ...
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from codex_api.core.utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class JobState:
    """Observable state of a guarded job."""
    running: bool = False
    runs: int = 0
    skipped_triggers: int = 0
    last_started: Optional[datetime] = None
    last_finished: Optional[datetime] = None
    last_result: Optional[Dict[str, Any]] = None
    last_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "runs": self.runs,
            "skipped_triggers": self.skipped_triggers,
            "last_started": self.last_started.isoformat() if self.last_started else None,
            "last_finished": self.last_finished.isoformat() if self.last_finished else None,
            "last_result": self.last_result,
            "last_error": self.last_error,
        }


class JobGuard:
    """Skip-if-already-running guard for one job."""

    def __init__(self, job_name: str):
        self.job_name = job_name
        self.state = JobState()
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self.state.running

    async def run(
        self,
        job_func: Callable[..., Awaitable[Dict[str, Any]]],
        *args,
        **kwargs,
    ) -> Dict[str, Any]:
        """
        Run `job_func` unless a previous run is still active.

        Exceptions from the job propagate after the state is recorded.
        """
        # Lock.locked() and acquire() happen without an await in between,
        # so two triggers on the same loop cannot both get through.
        if self._lock.locked():
            self.state.skipped_triggers += 1
            logger.warning(f"[{self.job_name}] Previous run still in progress, skipping trigger")
            return {"status": "skipped", "reason": "already_running", "job": self.job_name}

        async with self._lock:
            self.state.running = True
            self.state.runs += 1
            self.state.last_started = utcnow()
            self.state.last_error = None
            try:
                result = await job_func(*args, **kwargs)
                self.state.last_result = result
                return result
            except Exception as e:
                self.state.last_error = str(e)
                self.state.last_result = {"status": "failed", "error": str(e)}
                raise
            finally:
                self.state.running = False
                self.state.last_finished = utcnow()
