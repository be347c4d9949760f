"""Domain service running the validation request workflow.

A validation request is created ``open`` and closes exactly once. Both the
"one open request per claim" rule and the "one response per responder" rule
are repository uniqueness constraints; this service turns constraint
violations into domain errors instead of checking first and acting later.
"""

import logging
from typing import Dict, List, Optional

from ..errors import AuthorizationError, NotFoundError, OpenRequestExistsError, ValidationError
from ..models.claim import Claim
from ..models.validation import (
    Answer,
    ClaimValidator,
    PendingRecipient,
    RequestKind,
    RequestStatus,
    ValidationInboxItem,
    ValidationRequest,
    ValidationResponse,
    ValidatorKind,
)
from ..models.workspace import Caller
from ..ports.claim_repository import ClaimRepository, UniqueViolation
from ..ports.notifier import ValidationNotifier
from .claim_service import load_claim, require_not_retired
from .identity_service import IdentityService
from .request_closing import close_if_settled

logger = logging.getLogger(__name__)


class ValidationWorkflowService:
    """Validation workflow engine: open, remind, respond, close."""

    def __init__(
        self,
        repository: ClaimRepository,
        identity: IdentityService,
        notifier: Optional[ValidationNotifier] = None,
    ):
        """Initialize service.

        Args:
            repository: Claim repository port implementation
            identity: Resolver for caller profiles
            notifier: Notification port; decisions are only logged when absent
        """
        self._repository = repository
        self._identity = identity
        self._notifier = notifier

    async def open_validation_request(
        self,
        caller: Caller,
        claim_id: str,
        kind: RequestKind = RequestKind.MANUAL,
        claim_text_version_id: Optional[str] = None,
    ) -> str:
        """Open a validation request pinned to one text version.

        The owner may open any kind of request; the scheduler principal may
        only open scheduled ones. When ``claim_text_version_id`` is None the
        current version is pinned. A claim without validators gets its owner
        registered as the sole recipient.

        Returns:
            Identifier of the new request

        Raises:
            OpenRequestExistsError: If the claim already has an open request
        """
        self._identity.require_authenticated(caller)

        async with self._repository.transaction():
            claim = await load_claim(self._repository, claim_id)
            await self._require_workflow_access(caller, claim, kind)
            require_not_retired(claim)

            version_id = await self._resolve_version(claim, claim_text_version_id)

            fallback_profile_id = None
            if not await self._repository.list_validators(claim_id):
                fallback_profile_id = claim.owner_profile_id
                await self._repository.insert_validator(
                    ClaimValidator(
                        claim_id=claim_id,
                        validator_profile_id=fallback_profile_id,
                        kind=ValidatorKind.HUMAN,
                    )
                )
                logger.info(f"👤 Claim {claim_id} has no validators, owner added as recipient")

            try:
                request = await self._repository.insert_request(
                    ValidationRequest(
                        claim_id=claim_id,
                        claim_text_version_id=version_id,
                        kind=kind,
                        status=RequestStatus.OPEN,
                        attempt_count=1,
                        fallback_recipient_profile_id=fallback_profile_id,
                    )
                )
            except UniqueViolation:
                logger.info(f"⚠️ Claim {claim_id} already has an open validation request")
                raise OpenRequestExistsError(claim_id)

            recipients = await self._recipients(claim_id, request)

        logger.info(
            f"✅ Validation request {request.id} opened for claim {claim_id} "
            f"({kind.value}, {len(recipients)} recipient(s))"
        )
        await self._notify("opened", request, recipients)
        return request.id

    async def remind_open_validation_request(self, caller: Caller, claim_id: str) -> List[PendingRecipient]:
        """Pick out validators who have not answered the open request.

        An empty list means everyone has answered; nothing is incremented.

        Raises:
            NotFoundError: If the claim has no open request
        """
        self._identity.require_authenticated(caller)

        async with self._repository.transaction():
            claim = await load_claim(self._repository, claim_id)
            await self._require_workflow_access(caller, claim, RequestKind.SCHEDULED)

            request = await self._repository.get_open_request(claim_id)
            if request is None:
                raise NotFoundError(f"no open validation request for claim {claim_id}", code="no_open_request")

            responders = {r.responder_profile_id for r in await self._repository.list_responses(request.id)}
            pending = [
                recipient for recipient in await self._recipients(claim_id, request)
                if recipient.pending_validator_profile_id not in responders
            ]
            if not pending:
                logger.info(f"ℹ️ Every recipient of request {request.id} has answered, nothing to remind")
                return []

            request = await self._repository.update_request(
                request.model_copy(update={"attempt_count": request.attempt_count + 1})
            )

        logger.info(f"🔔 Reminding {len(pending)} validator(s) on request {request.id} (attempt {request.attempt_count})")
        await self._notify("reminder", request, pending)
        return pending

    async def submit_validation_response(
        self,
        caller: Caller,
        request_id: str,
        answer: Answer,
        context: Optional[str] = None,
    ) -> ValidationRequest:
        """Record the caller's answer and close the request if the mode says so.

        The response and the close happen in one transaction, so the closing
        check always sees every response written before it.

        Returns:
            The request after the response was recorded
        """
        self._identity.require_authenticated(caller)
        cleaned_context = (context or "").strip() or None

        async with self._repository.transaction():
            request = await self._repository.get_request(request_id)
            if request is None:
                raise NotFoundError(f"validation request {request_id} not found")
            if not request.is_open:
                raise ValidationError("validation request is not open", code="request_not_open")

            claim = await load_claim(self._repository, request.claim_id)
            responder = await self._identity.profile_in_workspace(caller, claim.workspace_id)

            responses = await self._repository.list_responses(request_id)
            if any(r.responder_profile_id == responder.id for r in responses):
                raise ValidationError("you have already responded to this request", code="duplicate_response")

            registered = {v.validator_profile_id for v in await self._repository.list_validators(claim.id)}
            if responder.id not in registered and responder.id != request.fallback_recipient_profile_id:
                logger.warning(f"⚠️ Profile {responder.id} is not a recipient of request {request_id}")
                raise AuthorizationError("not a validator for this claim", code="not_entitled")

            try:
                await self._repository.insert_response(
                    ValidationResponse(
                        request_id=request_id,
                        responder_profile_id=responder.id,
                        answer=answer,
                        context=cleaned_context,
                    )
                )
            except UniqueViolation:
                raise ValidationError("you have already responded to this request", code="duplicate_response")

            request = await close_if_settled(self._repository, claim) or request

        logger.info(f"✅ Response '{answer.value}' recorded on request {request_id}")
        return request

    async def validation_requests_for_me(
        self,
        caller: Caller,
        status: Optional[RequestStatus] = None,
    ) -> List[ValidationInboxItem]:
        """Requests addressed to the caller, newest first."""
        self._identity.require_authenticated(caller)

        async with self._repository.transaction():
            items = await self._inbox(caller)

        if status is not None:
            items = [item for item in items if item.status == status]
        return items

    async def get_validation_request_for_me(self, caller: Caller, request_id: str) -> ValidationInboxItem:
        """One inbox row.

        Raises:
            NotFoundError: If the request is missing or not addressed to the caller
        """
        self._identity.require_authenticated(caller)

        async with self._repository.transaction():
            items = await self._inbox(caller)

        for item in items:
            if item.request_id == request_id:
                return item
        raise NotFoundError("validation request not found, or you are not a recipient")

    async def _inbox(self, caller: Caller) -> List[ValidationInboxItem]:
        profile_ids = await self._identity.profile_ids(caller)

        requests: Dict[str, ValidationRequest] = {}
        recipient_of: Dict[str, str] = {}
        for profile_id in profile_ids:
            for entry in await self._repository.list_validator_entries_for_profile(profile_id):
                for request in await self._repository.list_requests(entry.claim_id):
                    # Requests closed before the profile was registered were never addressed to it.
                    if not request.is_open and (request.closed_at or request.created_at) < entry.created_at:
                        continue
                    requests[request.id] = request
                    recipient_of[request.id] = profile_id
            for request in await self._repository.list_requests_by_fallback_recipient(profile_id):
                requests[request.id] = request
                recipient_of[request.id] = profile_id

        items = []
        for request in requests.values():
            claim = await self._repository.get_claim(request.claim_id)
            version = await self._repository.get_text_version(request.claim_text_version_id)
            if claim is None or version is None:
                continue
            my_answer = None
            for response in await self._repository.list_responses(request.id):
                if response.responder_profile_id == recipient_of[request.id]:
                    my_answer = response.answer
            items.append(
                ValidationInboxItem(
                    request_id=request.id,
                    claim_id=claim.id,
                    claim_text_version_id=version.id,
                    kind=request.kind,
                    status=request.status,
                    attempt_count=request.attempt_count,
                    created_at=request.created_at,
                    closed_at=request.closed_at,
                    workspace_id=claim.workspace_id,
                    visibility=claim.visibility,
                    owner_profile_id=claim.owner_profile_id,
                    claim_text=version.text,
                    my_answer=my_answer,
                )
            )
        return sorted(items, key=lambda item: item.created_at, reverse=True)

    async def _require_workflow_access(self, caller: Caller, claim: Claim, kind: RequestKind) -> None:
        if caller.is_scheduler:
            if kind != RequestKind.SCHEDULED:
                raise AuthorizationError("scheduler may only open scheduled requests", code="not_owner")
            return
        await self._identity.require_owner(caller, claim)

    async def _resolve_version(self, claim: Claim, version_id: Optional[str]) -> str:
        if version_id is None:
            versions = await self._repository.list_text_versions(claim.id)
            if not versions:
                raise NotFoundError(f"claim {claim.id} has no text version", code="version_not_found")
            return versions[0].id
        version = await self._repository.get_text_version(version_id)
        if version is None or version.claim_id != claim.id:
            raise NotFoundError(f"text version {version_id} not found for claim {claim.id}", code="version_not_found")
        return version.id

    async def _recipients(self, claim_id: str, request: ValidationRequest) -> List[PendingRecipient]:
        """Registered validators plus the fallback recipient, in registration order."""
        profile_ids = [v.validator_profile_id for v in await self._repository.list_validators(claim_id)]
        fallback = request.fallback_recipient_profile_id
        if fallback and fallback not in profile_ids:
            profile_ids.append(fallback)

        recipients = []
        for profile_id in profile_ids:
            profile = await self._repository.get_profile(profile_id)
            recipients.append(
                PendingRecipient(
                    request_id=request.id,
                    pending_validator_profile_id=profile_id,
                    pending_validator_email=profile.email if profile else None,
                )
            )
        return recipients

    async def _notify(self, event: str, request: ValidationRequest, recipients: List[PendingRecipient]) -> None:
        if self._notifier is None:
            logger.debug(f"No notifier configured, skipping {event} notification for {request.id}")
            return
        try:
            if event == "opened":
                await self._notifier.notify_request_opened(request, recipients)
            else:
                await self._notifier.notify_reminder(request, recipients)
        except Exception as e:
            # State is already committed; delivery failures are reported, not rolled back.
            logger.error(f"❌ {event} notification failed for request {request.id}: {e}", exc_info=True)
