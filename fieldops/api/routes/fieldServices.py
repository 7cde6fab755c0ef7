"""
Field Service API Routes -- FS-WORKSPACE-012
=============================================

REST endpoints for the field service operations workspace.

Routes:
  GET    /api/v1/field-services/workspace          -- Workspace for current user
  POST   /api/v1/field-services/workspace/preview  -- Workspace from posted rows
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status

from fieldops.api.deps import CurrentUser, DBSession
from fieldops.api.schemas.fieldService import (
    FieldServiceWorkspaceOut,
    WorkspacePreviewRequest,
)
from fieldops.services import fieldServiceRepository
from fieldops.services.fieldServiceWorkspace import build_workspace, serialize_workspace

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/field-services", tags=["Field Services"])


# ---------------------------------------------------------------------------
# GET /api/v1/field-services/workspace
# ---------------------------------------------------------------------------

@router.get(
    "/workspace",
    response_model=FieldServiceWorkspaceOut,
    status_code=status.HTTP_200_OK,
    summary="Field service workspace for the current user",
    description=(
        "Builds the customer and provider field service workspaces of the "
        "authenticated user from their orders, order events and providers. "
        "Every relative time and SLA position is computed at request time."
    ),
)
async def get_workspace(
    db: DBSession,
    current_user: CurrentUser,
) -> FieldServiceWorkspaceOut:
    now = datetime.now(timezone.utc)
    result = await fieldServiceRepository.load_workspace_for_user(db, current_user.id, now)
    return FieldServiceWorkspaceOut.model_validate(serialize_workspace(result))


# ---------------------------------------------------------------------------
# POST /api/v1/field-services/workspace/preview
# ---------------------------------------------------------------------------

@router.post(
    "/workspace/preview",
    response_model=FieldServiceWorkspaceOut,
    status_code=status.HTTP_200_OK,
    summary="Preview a workspace from supplied rows",
    description=(
        "Builds the workspaces of the authenticated user from the order, event "
        "and provider rows in the request body. No field service tables are "
        "read. Supply ``now`` to pin the reference time."
    ),
)
async def preview_workspace(
    body: WorkspacePreviewRequest,
    current_user: CurrentUser,
) -> FieldServiceWorkspaceOut:
    now = body.now or datetime.now(timezone.utc)
    logger.debug(
        "Previewing workspace for user %s from %d orders",
        current_user.id,
        len(body.orders),
    )
    result = build_workspace(
        now=now,
        user={"id": current_user.id},
        orders=body.orders,
        events=body.events,
        providers=body.providers,
    )
    return FieldServiceWorkspaceOut.model_validate(serialize_workspace(result))
