"""Owner-only derived claim state and validation summaries."""

import logging
from typing import List, Optional, Sequence

from ..models.claim import Claim, ClaimState, ClaimStateRow, ValidationMode
from ..models.validation import Answer, RequestStatus, ValidationRequest, ValidationResponse, ValidationSummary
from ..models.workspace import Caller
from ..ports.claim_repository import ClaimRepository
from .claim_service import load_claim
from .identity_service import IdentityService

logger = logging.getLogger(__name__)


def derive_claim_state(
    claim: Claim,
    latest_closed_request: Optional[ValidationRequest],
    responses: Sequence[ValidationResponse],
) -> ClaimState:
    """Map the latest closed request onto a claim state.

    Retirement overrides everything. Under ``all`` a single "no" challenges
    the claim and unanimous "yes" affirms it; under ``any`` the closing
    (latest) response decides. Anything else is unconfirmed.
    """
    if claim.is_retired:
        return ClaimState.RETIRED
    if latest_closed_request is None or not responses:
        return ClaimState.UNCONFIRMED

    mode = latest_closed_request.closing_mode or claim.validation_mode
    if mode == ValidationMode.ALL:
        answers = [r.answer for r in responses]
        if Answer.NO in answers:
            return ClaimState.CHALLENGED
        if all(a == Answer.YES for a in answers):
            return ClaimState.AFFIRMED
        return ClaimState.UNCONFIRMED

    closing = max(responses, key=lambda r: r.created_at).answer
    if closing == Answer.NO:
        return ClaimState.CHALLENGED
    if closing == Answer.YES:
        return ClaimState.AFFIRMED
    return ClaimState.UNCONFIRMED


def latest_closed(requests: Sequence[ValidationRequest]) -> Optional[ValidationRequest]:
    closed = [r for r in requests if r.status == RequestStatus.CLOSED]
    if not closed:
        return None
    return max(closed, key=lambda r: (r.closed_at or r.created_at, r.created_at))


class ClaimStateService:
    """Claim state deriver.

    Every entry point checks ownership itself; non-owners cannot get a
    state computed for them.
    """

    def __init__(self, repository: ClaimRepository, identity: IdentityService):
        self._repository = repository
        self._identity = identity

    async def get_my_claim_states_for_workspace(self, caller: Caller, workspace_id: str) -> List[ClaimStateRow]:
        """Derived states of the caller's own claims in a workspace."""
        self._identity.require_authenticated(caller)

        async with self._repository.transaction():
            profile_ids = await self._identity.profile_ids(caller)
            rows = []
            for claim in await self._repository.list_claims(workspace_id):
                if claim.owner_profile_id not in profile_ids:
                    continue
                rows.append(ClaimStateRow(claim_id=claim.id, state=await self._derive(claim)))

        logger.info(f"📊 Derived {len(rows)} claim state(s) in workspace {workspace_id}")
        return rows

    async def get_claim_state(self, caller: Caller, claim_id: str) -> ClaimStateRow:
        """Derived state of one claim the caller owns."""
        self._identity.require_authenticated(caller)

        async with self._repository.transaction():
            claim = await load_claim(self._repository, claim_id)
            await self._identity.require_owner(caller, claim)
            return ClaimStateRow(claim_id=claim.id, state=await self._derive(claim))

    async def get_claim_validation_summary(self, caller: Caller, claim_id: str) -> ValidationSummary:
        """Request and answer counts for a claim the caller owns."""
        self._identity.require_authenticated(caller)

        async with self._repository.transaction():
            claim = await load_claim(self._repository, claim_id)
            await self._identity.require_owner(caller, claim)

            summary = ValidationSummary(claim_id=claim_id)
            for request in await self._repository.list_requests(claim_id):
                summary.total_requests += 1
                if request.status == RequestStatus.OPEN:
                    summary.open_requests += 1
                else:
                    summary.closed_requests += 1
                for response in await self._repository.list_responses(request.id):
                    summary.total_responses += 1
                    if response.answer == Answer.YES:
                        summary.yes_count += 1
                    elif response.answer == Answer.UNSURE:
                        summary.unsure_count += 1
                    else:
                        summary.no_count += 1
            return summary

    async def _derive(self, claim: Claim) -> ClaimState:
        request = latest_closed(await self._repository.list_requests(claim.id))
        responses = await self._repository.list_responses(request.id) if request else []
        return derive_claim_state(claim, request, responses)
