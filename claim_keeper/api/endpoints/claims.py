"""Claim, text history and validator endpoints."""

import logging
from typing import List

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from ...domain.errors import ClaimKeeperError
from ...domain.models.claim import (
    ClaimStateRow,
    ClaimTextVersion,
    ReviewCadence,
    ValidationMode,
    Visibility,
)
from ...domain.models.validation import ValidationSummary, ValidatorKind, ValidatorListing
from ...domain.models.workspace import Caller
from ...domain.services.claim_service import ClaimService
from ...domain.services.claim_state_service import ClaimStateService
from ...domain.services.validator_registry_service import ValidatorRegistryService
from ...infrastructure.dependencies import (
    get_caller,
    get_claim_service,
    get_claim_state_service,
    get_validator_registry_service,
)
from ..errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/claims", tags=["claims"])


# Request/Response Models
class CreateClaimRequest(BaseModel):
    """Request to create a claim with its first wording."""

    workspace_id: str = Field(..., description="Workspace the claim belongs to")
    text: str = Field(..., description="Initial claim text")
    visibility: Visibility = Field(default=Visibility.PRIVATE)
    review_cadence: ReviewCadence = Field(default=ReviewCadence.MONTHLY)
    validation_mode: ValidationMode = Field(default=ValidationMode.ANY)


class CreateClaimResponse(BaseModel):
    claim_id: str


class EditClaimRequest(BaseModel):
    """Request to append new wording and set visibility."""

    text: str = Field(..., description="New claim text")
    visibility: Visibility = Field(..., description="New visibility")


class EditSettingsRequest(BaseModel):
    """Request to change validation settings."""

    review_cadence: ReviewCadence
    validation_mode: ValidationMode


class AddValidatorRequest(BaseModel):
    """Request to register a workspace member as validator."""

    email: str = Field(..., description="Email of the workspace member")
    kind: ValidatorKind = Field(default=ValidatorKind.HUMAN)


class AddValidatorResponse(BaseModel):
    validator_profile_id: str


@router.post("", response_model=CreateClaimResponse, status_code=201)
async def create_claim(
    request: CreateClaimRequest,
    caller: Caller = Depends(get_caller),
    claims: ClaimService = Depends(get_claim_service),
) -> CreateClaimResponse:
    """Create a claim owned by the caller."""
    try:
        claim_id = await claims.create_claim_with_text(
            caller,
            request.workspace_id,
            visibility=request.visibility,
            review_cadence=request.review_cadence,
            validation_mode=request.validation_mode,
            text=request.text,
        )
    except ClaimKeeperError as e:
        raise to_http_exception(e)
    return CreateClaimResponse(claim_id=claim_id)


@router.put("/{claim_id}", status_code=204)
async def edit_claim(
    claim_id: str,
    request: EditClaimRequest,
    caller: Caller = Depends(get_caller),
    claims: ClaimService = Depends(get_claim_service),
) -> Response:
    """Append a text version and update visibility."""
    try:
        await claims.edit_claim_text_and_visibility(caller, claim_id, request.text, request.visibility)
    except ClaimKeeperError as e:
        raise to_http_exception(e)
    return Response(status_code=204)


@router.put("/{claim_id}/settings", status_code=204)
async def edit_claim_settings(
    claim_id: str,
    request: EditSettingsRequest,
    caller: Caller = Depends(get_caller),
    claims: ClaimService = Depends(get_claim_service),
) -> Response:
    """Change review cadence and validation mode."""
    try:
        await claims.edit_claim_validation_settings(
            caller, claim_id, request.review_cadence, request.validation_mode
        )
    except ClaimKeeperError as e:
        raise to_http_exception(e)
    return Response(status_code=204)


@router.post("/{claim_id}/retire", status_code=204)
async def retire_claim(
    claim_id: str,
    caller: Caller = Depends(get_caller),
    claims: ClaimService = Depends(get_claim_service),
) -> Response:
    """Retire a claim."""
    try:
        await claims.retire_claim(caller, claim_id)
    except ClaimKeeperError as e:
        raise to_http_exception(e)
    return Response(status_code=204)


@router.get("/{claim_id}/versions", response_model=List[ClaimTextVersion])
async def list_text_versions(
    claim_id: str,
    caller: Caller = Depends(get_caller),
    claims: ClaimService = Depends(get_claim_service),
) -> List[ClaimTextVersion]:
    """Text history, newest first."""
    try:
        return await claims.list_text_versions(caller, claim_id)
    except ClaimKeeperError as e:
        raise to_http_exception(e)


@router.get("/{claim_id}/validators", response_model=List[ValidatorListing])
async def list_validators(
    claim_id: str,
    caller: Caller = Depends(get_caller),
    registry: ValidatorRegistryService = Depends(get_validator_registry_service),
) -> List[ValidatorListing]:
    """Registered validators (owner only)."""
    try:
        return await registry.list_claim_validators(caller, claim_id)
    except ClaimKeeperError as e:
        raise to_http_exception(e)


@router.post("/{claim_id}/validators", response_model=AddValidatorResponse, status_code=201)
async def add_validator(
    claim_id: str,
    request: AddValidatorRequest,
    caller: Caller = Depends(get_caller),
    registry: ValidatorRegistryService = Depends(get_validator_registry_service),
) -> AddValidatorResponse:
    """Register a validator by email (owner only)."""
    try:
        profile_id = await registry.add_claim_validator_by_email(caller, claim_id, request.email, request.kind)
    except ClaimKeeperError as e:
        raise to_http_exception(e)
    return AddValidatorResponse(validator_profile_id=profile_id)


@router.delete("/{claim_id}/validators/{validator_profile_id}", status_code=204)
async def remove_validator(
    claim_id: str,
    validator_profile_id: str,
    caller: Caller = Depends(get_caller),
    registry: ValidatorRegistryService = Depends(get_validator_registry_service),
) -> Response:
    """Unregister a validator; repeating the call is harmless."""
    try:
        await registry.remove_claim_validator(caller, claim_id, validator_profile_id)
    except ClaimKeeperError as e:
        raise to_http_exception(e)
    return Response(status_code=204)


@router.get("/{claim_id}/state", response_model=ClaimStateRow)
async def get_claim_state(
    claim_id: str,
    caller: Caller = Depends(get_caller),
    states: ClaimStateService = Depends(get_claim_state_service),
) -> ClaimStateRow:
    """Derived state (owner only)."""
    try:
        return await states.get_claim_state(caller, claim_id)
    except ClaimKeeperError as e:
        raise to_http_exception(e)


@router.get("/{claim_id}/validation-summary", response_model=ValidationSummary)
async def get_validation_summary(
    claim_id: str,
    caller: Caller = Depends(get_caller),
    states: ClaimStateService = Depends(get_claim_state_service),
) -> ValidationSummary:
    """Validation counts (owner only)."""
    try:
        return await states.get_claim_validation_summary(caller, claim_id)
    except ClaimKeeperError as e:
        raise to_http_exception(e)
