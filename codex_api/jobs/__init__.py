"""
Jobs Package

Reconciliation jobs (scheduled) and seed jobs (on demand).
"""
from codex_api.jobs.owner_sync import run_owner_sync_job
from codex_api.jobs.price_sync import run_price_sync_job
from codex_api.jobs.seed import run_asset_repair_job, run_seed_job
from codex_api.jobs.scheduler import CodexScheduler

__all__ = [
    "run_owner_sync_job",
    "run_price_sync_job",
    "run_seed_job",
    "run_asset_repair_job",
    "CodexScheduler",
]
