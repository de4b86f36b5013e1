"""
SQLAlchemy models for the SQL store backend.
"""
from codex_api.models.codex import CodexItem, Folder, create_schema

__all__ = ["CodexItem", "Folder", "create_schema"]
