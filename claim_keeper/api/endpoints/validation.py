"""Validation request endpoints: open, remind, respond and inbox."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ...domain.errors import ClaimKeeperError
from ...domain.models.validation import (
    Answer,
    PendingRecipient,
    RequestKind,
    RequestStatus,
    ValidationInboxItem,
)
from ...domain.models.workspace import Caller
from ...domain.services.validation_workflow_service import ValidationWorkflowService
from ...infrastructure.dependencies import get_caller, get_validation_workflow_service
from ..errors import to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["validation"])


class OpenValidationRequest(BaseModel):
    """Request to open a validation round for a claim."""

    kind: RequestKind = Field(default=RequestKind.MANUAL)
    claim_text_version_id: Optional[str] = Field(
        None, description="Version to pin; the current version when omitted"
    )


class OpenValidationResponse(BaseModel):
    request_id: str


class SubmitResponseRequest(BaseModel):
    """A validator's answer."""

    answer: Answer
    context: Optional[str] = Field(None, description="Optional free-text context")


class SubmitResponseResult(BaseModel):
    request_id: str
    status: RequestStatus


@router.post(
    "/claims/{claim_id}/validation-requests",
    response_model=OpenValidationResponse,
    status_code=201,
)
async def open_validation_request(
    claim_id: str,
    request: OpenValidationRequest,
    caller: Caller = Depends(get_caller),
    workflow: ValidationWorkflowService = Depends(get_validation_workflow_service),
) -> OpenValidationResponse:
    """Open a request; 409 with code ``open_request_exists`` when one is already open."""
    try:
        request_id = await workflow.open_validation_request(
            caller, claim_id, request.kind, request.claim_text_version_id
        )
    except ClaimKeeperError as e:
        raise to_http_exception(e)
    return OpenValidationResponse(request_id=request_id)


@router.post(
    "/claims/{claim_id}/validation-requests/remind",
    response_model=List[PendingRecipient],
)
async def remind_open_validation_request(
    claim_id: str,
    caller: Caller = Depends(get_caller),
    workflow: ValidationWorkflowService = Depends(get_validation_workflow_service),
) -> List[PendingRecipient]:
    """Validators still to answer; empty when everyone has."""
    try:
        return await workflow.remind_open_validation_request(caller, claim_id)
    except ClaimKeeperError as e:
        raise to_http_exception(e)


@router.get("/validation-requests", response_model=List[ValidationInboxItem])
async def validation_requests_for_me(
    status: Optional[RequestStatus] = None,
    caller: Caller = Depends(get_caller),
    workflow: ValidationWorkflowService = Depends(get_validation_workflow_service),
) -> List[ValidationInboxItem]:
    """Requests addressed to the caller."""
    try:
        return await workflow.validation_requests_for_me(caller, status)
    except ClaimKeeperError as e:
        raise to_http_exception(e)


@router.get("/validation-requests/{request_id}", response_model=ValidationInboxItem)
async def get_validation_request_for_me(
    request_id: str,
    caller: Caller = Depends(get_caller),
    workflow: ValidationWorkflowService = Depends(get_validation_workflow_service),
) -> ValidationInboxItem:
    """One request addressed to the caller."""
    try:
        return await workflow.get_validation_request_for_me(caller, request_id)
    except ClaimKeeperError as e:
        raise to_http_exception(e)


@router.post(
    "/validation-requests/{request_id}/responses",
    response_model=SubmitResponseResult,
    status_code=201,
)
async def submit_validation_response(
    request_id: str,
    request: SubmitResponseRequest,
    caller: Caller = Depends(get_caller),
    workflow: ValidationWorkflowService = Depends(get_validation_workflow_service),
) -> SubmitResponseResult:
    """Record the caller's answer."""
    try:
        updated = await workflow.submit_validation_response(
            caller, request_id, request.answer, request.context
        )
    except ClaimKeeperError as e:
        raise to_http_exception(e)
    return SubmitResponseResult(request_id=updated.id, status=updated.status)
