"""
Directus REST Adapter

Implements the ItemStore / FileStore / FolderStore protocols against a
Directus instance over its REST API:

- GET/POST/PATCH /items/<collection>
- GET /collections/<collection>        (schema presence check)
- POST /files                          (multipart upload)
- GET/POST /folders

Directus error payloads look like:
    {"errors": [{"message": "...", "extensions": {"code": "INVALID_PAYLOAD"}}]}

They are translated here, and only here, into typed store errors so the
jobs never pattern-match on message text.
"""
import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

import httpx

from codex_api.adapters.base import Query, Record
from codex_api.core.exceptions import (
    CollectionNotFoundError,
    FieldNotFoundError,
    StoreError,
    StoreNotConnectedError,
)

logger = logging.getLogger(__name__)

# Directus error codes that can signal a missing field
FIELD_ERROR_CODES = {"INVALID_PAYLOAD", "INVALID_QUERY", "FORBIDDEN"}

_QUOTED_NAME = re.compile(r"[\"'`]([A-Za-z0-9_]+)[\"'`]")


def _first_error(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, dict):
        errors = payload.get("errors") or []
        if errors and isinstance(errors[0], dict):
            return errors[0]
    return {}


def _find_field(message: str, candidates: Iterable[str]) -> Optional[str]:
    """Return the candidate field a Directus error message refers to, if any."""
    quoted = set(_QUOTED_NAME.findall(message))
    for name in candidates:
        if name in quoted:
            return name
    return None


def encode_query(query: Query) -> Dict[str, str]:
    """Convert a query dict into Directus query-string parameters."""
    params: Dict[str, str] = {}
    if query.get("filter"):
        params["filter"] = json.dumps(query["filter"], separators=(",", ":"))
    if query.get("fields"):
        params["fields"] = ",".join(query["fields"])
    if "limit" in query and query["limit"] is not None:
        params["limit"] = str(query["limit"])
    if query.get("offset"):
        params["offset"] = str(query["offset"])
    if query.get("sort"):
        params["sort"] = ",".join(query["sort"])
    return params


def _filter_fields(node: Any) -> List[str]:
    """Collect field names referenced by a filter tree."""
    names: List[str] = []
    if isinstance(node, dict):
        for key, value in node.items():
            if key in ("_and", "_or"):
                for child in value:
                    names.extend(_filter_fields(child))
            elif not key.startswith("_"):
                names.append(key)
    return names


class DirectusClient:
    """
    Thin async wrapper around the Directus REST API.

    Usage:
        client = DirectusClient("http://localhost:8055", token="...")
        items = DirectusItemStore(client, "codex")
        ...
        await client.close()
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            follow_redirects=True,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        candidate_fields: Iterable[str] = (),
        collection: Optional[str] = None,
        **kwargs,
    ) -> Any:
        """
        Perform a request and return the decoded `data` member.

        Raises:
            StoreNotConnectedError: transport failure
            CollectionNotFoundError: the collection route is missing
            FieldNotFoundError: a referenced field is missing
            StoreError: any other non-2xx response
        """
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise StoreNotConnectedError(f"Directus unreachable ({method} {path}): {e}") from e

        if response.is_success:
            if response.status_code == 204 or not response.content:
                return None
            try:
                body = response.json()
            except ValueError as e:
                raise StoreError(
                    f"Directus {method} {path} returned a non-JSON body",
                    details={"status_code": response.status_code},
                ) from e
            if not isinstance(body, dict):
                raise StoreError(
                    f"Directus {method} {path} returned a {type(body).__name__} instead of an object",
                    details={"status_code": response.status_code},
                )
            return body.get("data")

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        error = _first_error(payload)
        message = error.get("message") or response.text or f"HTTP {response.status_code}"
        code = (error.get("extensions") or {}).get("code", "")

        field = _find_field(message, candidate_fields)
        if field and code in FIELD_ERROR_CODES:
            raise FieldNotFoundError(field, message)

        if collection and (response.status_code == 404 or code == "ROUTE_NOT_FOUND"):
            raise CollectionNotFoundError(collection, message)

        raise StoreError(
            f"Directus {method} {path} failed: {response.status_code} {message}",
            code=code or None,
            details={"status_code": response.status_code},
        )


class DirectusItemStore:
    """ItemStore backed by /items/<collection>."""

    def __init__(self, client: DirectusClient, collection: str):
        self.client = client
        self.collection = collection

    async def create_one(self, fields: Record) -> Any:
        data = await self.client.request(
            "POST",
            f"/items/{self.collection}",
            json=fields,
            candidate_fields=fields.keys(),
            collection=self.collection,
        )
        return data.get("id") if isinstance(data, dict) else data

    async def update_one(self, item_id: Any, fields: Record) -> None:
        await self.client.request(
            "PATCH",
            f"/items/{self.collection}/{item_id}",
            json=fields,
            candidate_fields=fields.keys(),
            collection=self.collection,
        )

    async def read_by_query(self, query: Query) -> List[Record]:
        candidates = list(query.get("fields") or []) + _filter_fields(query.get("filter"))
        data = await self.client.request(
            "GET",
            f"/items/{self.collection}",
            params=encode_query(query),
            candidate_fields=candidates,
            collection=self.collection,
        )
        return data if isinstance(data, list) else []

    async def collection_exists(self) -> bool:
        try:
            await self.client.request("GET", f"/collections/{self.collection}", collection=self.collection)
        except CollectionNotFoundError:
            return False
        except StoreError as e:
            # Directus answers 403 for collections that do not exist
            if e.details.get("status_code") == 403:
                return False
            raise
        return True


class DirectusFileStore:
    """FileStore backed by POST /files (multipart)."""

    def __init__(self, client: DirectusClient, storage: str = "local"):
        self.client = client
        self.storage = storage

    async def upload_one(
        self,
        content: bytes,
        *,
        filename_download: str,
        type: str,
        folder: Optional[str] = None,
        storage: Optional[str] = None,
    ) -> str:
        # Directus reads the metadata fields before the file part
        form = {
            "storage": storage or self.storage,
            "filename_download": filename_download,
            "type": type,
        }
        if folder:
            form["folder"] = folder
        data = await self.client.request(
            "POST",
            "/files",
            data=form,
            files={"file": (filename_download, content, type)},
        )
        if not isinstance(data, dict) or not data.get("id"):
            raise StoreError(f"Directus upload of {filename_download} returned no file id")
        return data["id"]


class DirectusFolderStore:
    """FolderStore backed by /folders."""

    def __init__(self, client: DirectusClient):
        self.client = client

    async def read_by_query(self, query: Query) -> List[Record]:
        data = await self.client.request("GET", "/folders", params=encode_query(query))
        return data if isinstance(data, list) else []

    async def create_one(self, fields: Record) -> Any:
        data = await self.client.request("POST", "/folders", json=fields)
        return data.get("id") if isinstance(data, dict) else data
