"""
Health endpoints

/health reports the configured store and whether the codex collection is
reachable. Returns 503 when the store cannot be reached.
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from codex_api.adapters.base import StoreBundle
from codex_api.api.deps import get_settings, get_stores
from codex_api.core.config import Settings
from codex_api.core.exceptions import StoreError
from codex_api.core.utils import utcnow
from codex_api.schemas.api import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/")
async def root(settings: Settings = Depends(get_settings)):
    return {
        "message": settings.APP_NAME,
        "status": "operational",
    }


@router.get("/health", response_model=HealthResponse)
async def health_check(
    settings: Settings = Depends(get_settings),
    stores: StoreBundle = Depends(get_stores),
):
    health_status = {
        "status": "healthy",
        "store_backend": settings.STORE_BACKEND,
        "store": "unknown",
        "collection": settings.CODEX_COLLECTION,
        "timestamp": utcnow().isoformat(),
    }

    try:
        exists = await stores.items.collection_exists()
        health_status["store"] = "connected" if exists else "collection_missing"
    except StoreError as e:
        logger.warning(f"[health] Store check failed: {e.message}")
        health_status["store"] = f"error: {e.code}"
        health_status["status"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
