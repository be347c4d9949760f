"""Workspace, identity and member-safe listing endpoints."""

import logging
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ...domain.errors import ClaimKeeperError
from ...domain.models.claim import ClaimStateRow, MemberClaimView
from ...domain.models.workspace import Caller, Workspace
from ...domain.services.claim_state_service import ClaimStateService
from ...domain.services.identity_service import IdentityService
from ...domain.services.visibility_service import VisibilityService
from ...infrastructure.dependencies import (
    get_caller,
    get_claim_state_service,
    get_identity_service,
    get_visibility_service,
)
from ..errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["workspaces"])


class BootstrapWorkspaceRequest(BaseModel):
    """Request to create a workspace during onboarding."""

    name: str = Field(..., description="Workspace name")


class BootstrapWorkspaceResponse(BaseModel):
    """Response carrying the new workspace id."""

    workspace_id: str


@router.post("/workspaces", response_model=BootstrapWorkspaceResponse, status_code=201)
async def bootstrap_workspace(
    request: BootstrapWorkspaceRequest,
    caller: Caller = Depends(get_caller),
    identity: IdentityService = Depends(get_identity_service),
) -> BootstrapWorkspaceResponse:
    """Create a workspace with the caller as its first member."""
    try:
        workspace_id = await identity.bootstrap_workspace(caller, request.name)
    except ClaimKeeperError as e:
        raise to_http_exception(e)
    return BootstrapWorkspaceResponse(workspace_id=workspace_id)


@router.get("/workspaces", response_model=List[Workspace])
async def my_workspaces(
    caller: Caller = Depends(get_caller),
    identity: IdentityService = Depends(get_identity_service),
) -> List[Workspace]:
    """Workspaces the caller belongs to."""
    try:
        return await identity.my_workspaces(caller)
    except ClaimKeeperError as e:
        raise to_http_exception(e)


@router.get("/me/profile-ids", response_model=List[str])
async def my_profile_ids(
    caller: Caller = Depends(get_caller),
    identity: IdentityService = Depends(get_identity_service),
) -> List[str]:
    """Profile ids held by the caller across workspaces."""
    try:
        return await identity.my_profile_ids(caller)
    except ClaimKeeperError as e:
        raise to_http_exception(e)


@router.get("/workspaces/{workspace_id}/claims", response_model=List[MemberClaimView])
async def claims_visible_to_member(
    workspace_id: str,
    include_retired: bool = False,
    caller: Caller = Depends(get_caller),
    visibility: VisibilityService = Depends(get_visibility_service),
) -> List[MemberClaimView]:
    """Member-safe claim list. Carries no state or validation data."""
    try:
        return await visibility.claims_visible_to_member(caller, workspace_id, include_retired)
    except ClaimKeeperError as e:
        raise to_http_exception(e)


@router.get("/workspaces/{workspace_id}/claim-states", response_model=List[ClaimStateRow])
async def my_claim_states(
    workspace_id: str,
    caller: Caller = Depends(get_caller),
    states: ClaimStateService = Depends(get_claim_state_service),
) -> List[ClaimStateRow]:
    """Derived states of the caller's own claims in a workspace."""
    try:
        return await states.get_my_claim_states_for_workspace(caller, workspace_id)
    except ClaimKeeperError as e:
        raise to_http_exception(e)
