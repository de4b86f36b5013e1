"""
Pydantic Schemas for upstream producer payloads

- AdoptionPrice: one MOCA adoption listing ({tokenId, price: {value, currency, decimals}})
- GraphToken: one token row from The Graph subgraph ({id, tokenId, owner})

Fixed-point price values stay strings; callers convert with int() so large
wei amounts compare exactly.
"""
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class PriceInfo(BaseModel):
    """Fixed-point price: `value` / 10**decimals units of `currency`."""
    value: str
    currency: str
    decimals: int = Field(..., ge=0, le=77)

    @field_validator("value", mode="before")
    @classmethod
    def value_as_integer_string(cls, v):
        if isinstance(v, bool):
            raise ValueError("price value must be an integer string")
        if isinstance(v, int):
            return str(v)
        if isinstance(v, str) and v.strip().isdigit():
            return v.strip()
        raise ValueError(f"price value must be a non-negative integer string, got {v!r}")

    @property
    def amount(self) -> int:
        return int(self.value)


class AdoptionPrice(BaseModel):
    """One adoption listing from the MOCA settings feed."""
    tokenId: str
    price: PriceInfo

    @field_validator("tokenId", mode="before")
    @classmethod
    def token_id_as_string(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class GraphToken(BaseModel):
    """One revealed token from the ownership subgraph."""
    id: str
    tokenId: str
    owner: Optional[str] = None

    @field_validator("tokenId", "id", mode="before")
    @classmethod
    def as_string(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v
