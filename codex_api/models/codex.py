"""
Codex Models (SQL store backend)

The codex table keeps the fields the pipeline reads or writes as real
columns. Every other descriptive field from the source documents (biography,
traits, writing style, ...) lands in the `attributes` JSON column.

Ownership of columns is disjoint between writers:
- seed loader: everything except owner/price
- owner sync: owner
- price sync: price
"""
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Integer, String, func

from codex_api.core.database import Base


class CodexItem(Base):
    """One collectible's metadata record, keyed by its token id."""
    __tablename__ = "codex"

    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(255), nullable=True)

    # Reconciliation-owned fields
    owner = Column(String(64), nullable=True, index=True)
    price = Column(String(64), nullable=True)

    # Asset references (file ids after migration)
    thumbnail = Column(String(255), nullable=True)
    thumbnail_background = Column(String(255), nullable=True)
    thumbnail_character = Column(String(255), nullable=True)
    ipfs_character = Column(String(128), nullable=True)

    timestamp_created = Column(DateTime(timezone=True), nullable=True)
    date_created = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Everything else from the source document
    attributes = Column(JSON, nullable=True)


class Folder(Base):
    """Logical container for uploaded assets."""
    __tablename__ = "folders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name = Column(String(255), nullable=False)
    parent = Column(String(36), nullable=True)


async def create_schema(engine) -> None:
    """Create the codex and folders tables if they do not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
