"""
API dependencies

Stores, settings and the scheduler are attached to app.state by
codex_api.main.create_app; routes pull them through these helpers.
"""
from fastapi import Request

from codex_api.adapters.base import StoreBundle
from codex_api.core.config import Settings
from codex_api.jobs.scheduler import CodexScheduler


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_stores(request: Request) -> StoreBundle:
    return request.app.state.stores


def get_scheduler(request: Request) -> CodexScheduler:
    return request.app.state.scheduler
