"""
API response schemas
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    store_backend: str
    store: str
    collection: str
    timestamp: str


class JobTriggerResponse(BaseModel):
    job: str
    status: str
    message: Optional[str] = None


class JobsStatusResponse(BaseModel):
    scheduler_running: bool
    jobs: Dict[str, Dict[str, Any]]
