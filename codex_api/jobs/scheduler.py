"""
Codex Job Scheduler

Runs the reconciliation jobs on fixed cadences as asyncio tasks:
- owner_sync: every OWNER_SYNC_INTERVAL_MINUTES (hourly, on the hour)
- price_sync: every PRICE_SYNC_INTERVAL_MINUTES (every minute, on the minute)

Ticks are aligned to wall-clock interval boundaries, like a cron schedule.
Each tick fires the job in its own task, so a slow run does not delay the
schedule; the per-job JobGuard skips a tick that arrives while the previous
run is still in progress.

seed and asset_repair are not scheduled; they run through run_job_now or trigger.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from codex_api.adapters.base import StoreBundle
from codex_api.core.config import Settings
from codex_api.core.job_guard import JobGuard
from codex_api.jobs.owner_sync import run_owner_sync_job
from codex_api.jobs.price_sync import run_price_sync_job
from codex_api.jobs.seed import run_asset_repair_job, run_seed_job

logger = logging.getLogger(__name__)

JobFunc = Callable[..., Awaitable[Dict[str, Any]]]

JOBS: Dict[str, JobFunc] = {
    "owner_sync": run_owner_sync_job,
    "price_sync": run_price_sync_job,
    "seed": run_seed_job,
    "asset_repair": run_asset_repair_job,
}


def seconds_until_next_boundary(interval_minutes: int, now: Optional[float] = None) -> float:
    """Seconds from `now` to the next multiple of the interval (epoch-aligned)."""
    interval_seconds = max(1, interval_minutes) * 60
    now = time.time() if now is None else now
    remaining = interval_seconds - (now % interval_seconds)
    return remaining if remaining > 0 else interval_seconds


class CodexScheduler:
    """
    Scheduler for the codex reconciliation jobs.

    Call start() to begin background scheduling.
    """

    def __init__(self, stores: StoreBundle, settings: Settings, jobs: Optional[Dict[str, JobFunc]] = None):
        self.stores = stores
        self.settings = settings
        self.jobs = dict(jobs or JOBS)
        self.guards: Dict[str, JobGuard] = {name: JobGuard(name) for name in self.jobs}
        self._tasks = []
        self._inflight: Set[asyncio.Task] = set()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start all scheduled jobs."""
        if self._running:
            logger.info("[SCHEDULER] Codex scheduler already running")
            return

        self._running = True
        self._tasks = [
            asyncio.create_task(
                self._run_job_loop("owner_sync", self.settings.OWNER_SYNC_INTERVAL_MINUTES)
            ),
            asyncio.create_task(
                self._run_job_loop("price_sync", self.settings.PRICE_SYNC_INTERVAL_MINUTES)
            ),
        ]

        logger.info("[SCHEDULER] Codex scheduler started")
        logger.info(f"[SCHEDULER]   - owner_sync: every {self.settings.OWNER_SYNC_INTERVAL_MINUTES} minutes")
        logger.info(f"[SCHEDULER]   - price_sync: every {self.settings.PRICE_SYNC_INTERVAL_MINUTES} minutes")

    async def stop(self):
        """Stop scheduling and cancel any job still running."""
        self._running = False
        tasks = list(self._tasks) + list(self._inflight)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        self._inflight.clear()
        logger.info("[SCHEDULER] Codex scheduler stopped")

    async def _run_job_loop(self, name: str, interval_minutes: int):
        """
        Fire `name` at every interval boundary until stopped.

        Args:
            name: Job name (key of JOBS)
            interval_minutes: Time between runs
        """
        while self._running:
            delay = seconds_until_next_boundary(interval_minutes)
            logger.debug(f"[SCHEDULER] Next {name} run in {delay:.0f}s")
            await asyncio.sleep(delay)
            if not self._running:
                break
            self.trigger(name)

    def trigger(self, name: str) -> asyncio.Task:
        """Start a guarded run of `name` in the background and return its task."""
        if name not in self.jobs:
            raise ValueError(f"Unknown job: {name}. Available: {list(self.jobs)}")
        task = asyncio.create_task(self._run_guarded(name))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _run_guarded(self, name: str, **kwargs) -> Dict[str, Any]:
        try:
            result = await self.guards[name].run(self.jobs[name], self.stores, self.settings, **kwargs)
        except Exception as e:
            logger.error(f"[SCHEDULER] Job {name} failed: {e}", exc_info=True)
            return {"status": "failed", "reason": "exception", "error": str(e)}
        logger.info(f"[SCHEDULER] Job {name} finished: {result.get('status')}")
        return result

    def is_running(self, job_name: str) -> bool:
        if job_name not in self.guards:
            raise ValueError(f"Unknown job: {job_name}. Available: {list(self.jobs)}")
        return self.guards[job_name].running

    async def run_job_now(self, job_name: str, **kwargs) -> Dict[str, Any]:
        """Manually trigger a job and wait for its result."""
        if job_name not in self.jobs:
            raise ValueError(f"Unknown job: {job_name}. Available: {list(self.jobs)}")
        logger.info(f"[SCHEDULER] Manual trigger: {job_name}")
        return await self._run_guarded(job_name, **kwargs)

    def status(self) -> Dict[str, Any]:
        return {
            "scheduler_running": self._running,
            "jobs": {name: guard.state.to_dict() for name, guard in self.guards.items()},
        }
