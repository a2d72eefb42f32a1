"""Pydantic models for data crossing the package boundary.

``FileMeta`` and ``ProposedGroup`` come from the repository scanner; the
``*Record`` models are what the storage collaborator receives.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FileMeta(BaseModel):
    """A scanned repository file."""

    model_config = ConfigDict(populate_by_name=True)

    path: str = Field(..., min_length=1, description="Repository-relative POSIX path.")
    layer: str = Field("", description="Architectural layer, e.g. 'Backend - Controllers'.")
    feature_name: Optional[str] = Field(None, alias="featureName")
    size: int = Field(0, ge=0, description="File size in bytes.")
    snippet: str = Field("", description="Leading source excerpt used as block content.")


class ProposedGroup(BaseModel):
    """Scanner-side grouping hint: a feature key and its files."""

    key: str = Field(..., min_length=1)
    files: List[str] = Field(default_factory=list)


class ScanResult(BaseModel):
    """Scanner output as read by the CLI."""

    files: List[FileMeta] = Field(default_factory=list)
    groups: List[ProposedGroup] = Field(default_factory=list)


class BlockRecord(BaseModel):
    id: str
    type: str
    content: str
    order: int = Field(..., ge=0)
    route: Optional[str] = None
    title: Optional[str] = None
    language: Optional[str] = None


class ScreenRecord(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    blocks: List[BlockRecord] = Field(..., min_length=1)


class CardRecord(BaseModel):
    """Persistence-ready card."""

    title: str = Field(..., min_length=1)
    description: str = ""
    category: str = Field("Geral", min_length=1)
    tech: Optional[str] = None
    language: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    card_type: str = "codigos"
    content_type: str = "code"
    visibility: str = "unlisted"
    screens: List[ScreenRecord] = Field(..., min_length=1)
