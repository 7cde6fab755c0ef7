"""
Pydantic v2 schemas for the field service workspace endpoints.

Request and response models use camelCase field names via an
``alias_generator``; ``populate_by_name=True`` lets snake_case names be
used for construction too.  Workspace bodies are produced by
``serialize_workspace`` and passed through as plain JSON objects.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _to_camel(name: str) -> str:
    """Convert a snake_case string to camelCase."""
    parts = name.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class WorkspacePreviewRequest(BaseModel):
    """Request body for POST /field-services/workspace/preview."""

    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
    )

    now: Optional[datetime] = Field(
        default=None,
        description="Reference time for the build. Defaults to the request time.",
    )
    orders: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Order rows joined with customer and provider columns.",
    )
    events: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Event rows for the orders, in any order.",
    )
    providers: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Standalone provider rows.",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class SearchIndexEntryOut(BaseModel):
    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
    )

    id: str
    role: str
    type: str
    title: str
    url: str


class FieldServiceWorkspaceOut(BaseModel):
    """Customer and provider workspaces plus search index entries."""

    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
    )

    customer: dict[str, Any]
    provider: dict[str, Any]
    search_index: list[SearchIndexEntryOut] = Field(default_factory=list)
