from codex_api.schemas.upstream import AdoptionPrice, GraphToken, PriceInfo
from codex_api.schemas.api import HealthResponse, JobTriggerResponse, JobsStatusResponse
