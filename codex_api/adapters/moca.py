"""
MOCA Adoption Feed Adapter

The adoption listings live in a Directus settings row on the MOCA API:

    GET <base_url>/items/settings?filter={"key":{"_eq":"adoption_details"}}
    -> {"data": [{"key": "adoption_details", "value": "<JSON array string>"}]}

`value` is itself a JSON-encoded array of AdoptionPrice records.
"""
import json
import logging
from typing import List, Optional, Tuple

import httpx
from pydantic import ValidationError

from codex_api.core.exceptions import UpstreamError
from codex_api.schemas.upstream import AdoptionPrice

logger = logging.getLogger(__name__)

ADOPTION_DETAILS_KEY = "adoption_details"


class MocaClient:
    """Reads adoption listings from the MOCA API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_adoption_details(self) -> Tuple[List[AdoptionPrice], int]:
        """
        Fetch and decode the adoption listings.

        Returns:
            (listings, invalid_count). A missing or empty settings row yields
            ([], 0); individual malformed listings are skipped and counted.

        Raises:
            UpstreamError: transport failure, non-2xx status, or undecodable payload
        """
        url = f"{self.base_url}/items/settings"
        params = {"filter": json.dumps({"key": {"_eq": ADOPTION_DETAILS_KEY}}, separators=(",", ":"))}

        try:
            response = await self._client.get(url, params=params, headers={"Content-Type": "application/json"})
        except httpx.HTTPError as e:
            raise UpstreamError(f"MOCA request failed: {e}", source="moca") from e

        if not response.is_success:
            raise UpstreamError(
                f"HTTP error! status: {response.status_code}",
                source="moca",
                status_code=response.status_code,
            )

        try:
            result = response.json()
        except ValueError as e:
            raise UpstreamError("MOCA returned a non-JSON body", source="moca") from e

        rows = result.get("data") if isinstance(result, dict) else None
        if not rows:
            return [], 0

        raw_value = rows[0].get("value") if isinstance(rows[0], dict) else None
        if not raw_value:
            return [], 0

        try:
            raw_listings = json.loads(raw_value) if isinstance(raw_value, str) else raw_value
        except ValueError as e:
            raise UpstreamError(f"adoption_details value is not valid JSON: {e}", source="moca") from e

        if not isinstance(raw_listings, list):
            raise UpstreamError("adoption_details value is not a JSON array", source="moca")

        listings: List[AdoptionPrice] = []
        invalid = 0
        for raw in raw_listings:
            try:
                listings.append(AdoptionPrice.model_validate(raw))
            except ValidationError as e:
                invalid += 1
                logger.warning(f"[moca] Skipping malformed adoption listing {raw!r}: {e.errors()[0]['msg']}")

        return listings, invalid
