# src/archive/models.py — v1
"""Archive models: PackResult."""

from __future__ import annotations

from pydantic import BaseModel


class PackResult(BaseModel):
    """Packed archive and its content-derived identifier."""

    content_hash: str
    archive_ref: str
    size_bytes: int = 0
