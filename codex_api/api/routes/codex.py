"""
Codex read endpoints

The inline thumbnail fields are large; list and detail payloads leave out
`thumbnail` and `thumbnail_background` unless the caller asks for them in
`fields` by name, with `*`, or with a `*`-prefixed path.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from codex_api.adapters.base import Record, StoreBundle
from codex_api.api.deps import get_stores
from codex_api.core.exceptions import CollectionNotFoundError, FieldNotFoundError, StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/codex", tags=["Codex"])

THUMBNAIL_FIELDS = ("thumbnail", "thumbnail_background")


def parse_fields(fields: Optional[str]) -> List[str]:
    if not fields:
        return []
    return [f.strip() for f in fields.split(",") if f.strip()]


def wants_thumbnails(fields: List[str]) -> bool:
    return any(f in THUMBNAIL_FIELDS or f.startswith("*") for f in fields)


def strip_thumbnails(record: Record) -> Record:
    return {k: v for k, v in record.items() if k not in THUMBNAIL_FIELDS}


def _build_query(fields: List[str], **extra) -> Dict[str, Any]:
    query: Dict[str, Any] = dict(extra)
    explicit = [f for f in fields if not f.startswith("*")]
    if explicit and len(explicit) == len(fields):
        query["fields"] = explicit
    return query


async def _read(stores: StoreBundle, query: Dict[str, Any]) -> List[Record]:
    try:
        return await stores.items.read_by_query(query)
    except CollectionNotFoundError:
        raise HTTPException(status_code=503, detail="Codex collection is not provisioned")
    except FieldNotFoundError as e:
        raise HTTPException(status_code=400, detail=f"Unknown field: {e.field}")
    except StoreError as e:
        logger.error(f"[codex] Store read failed: {e.message}")
        raise HTTPException(status_code=502, detail="Store unavailable")


@router.get("")
async def list_codex(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    fields: Optional[str] = Query(None, description="Comma-separated field list"),
    stores: StoreBundle = Depends(get_stores),
):
    requested = parse_fields(fields)
    records = await _read(stores, _build_query(requested, sort=["id"], limit=limit, offset=offset))
    if not wants_thumbnails(requested):
        records = [strip_thumbnails(r) for r in records]
    return {"data": records, "limit": limit, "offset": offset}


@router.get("/{item_id}")
async def get_codex_item(
    item_id: int,
    fields: Optional[str] = Query(None, description="Comma-separated field list"),
    stores: StoreBundle = Depends(get_stores),
):
    requested = parse_fields(fields)
    records = await _read(stores, _build_query(requested, filter={"id": {"_eq": item_id}}, limit=1))
    if not records:
        raise HTTPException(status_code=404, detail=f"Codex item {item_id} not found")

    record = records[0]
    if not wants_thumbnails(requested):
        record = strip_thumbnails(record)
    return {"data": record}
