"""Domain service owning claims and their text history."""

import logging
from typing import List, Optional

from ..errors import NotFoundError, ValidationError
from ..models.claim import (
    Claim,
    ClaimTextVersion,
    ReviewCadence,
    ValidationMode,
    Visibility,
)
from ..models.validation import RequestStatus
from ..models.workspace import Caller, utc_now
from ..ports.claim_repository import ClaimRepository
from .identity_service import IdentityService
from .request_closing import close_if_settled
from .visibility_service import is_visible_to

logger = logging.getLogger(__name__)


async def load_claim(repository: ClaimRepository, claim_id: str) -> Claim:
    """Fetch a claim or raise NotFoundError."""
    claim = await repository.get_claim(claim_id)
    if claim is None:
        raise NotFoundError(f"claim {claim_id} not found")
    return claim


def require_not_retired(claim: Claim) -> None:
    """Retired claims are terminal and accept no changes."""
    if claim.is_retired:
        raise ValidationError("claim is retired", code="claim_retired")


def clean_text(text: Optional[str]) -> str:
    """Trim claim text, rejecting empty wording."""
    cleaned = (text or "").strip()
    if not cleaned:
        raise ValidationError("claim text cannot be empty", code="empty_text")
    return cleaned


class ClaimService:
    """Claim store operations.

    All mutations are owner-only, run inside a single repository
    transaction, and never rewrite text history.
    """

    def __init__(self, repository: ClaimRepository, identity: IdentityService):
        """Initialize service.

        Args:
            repository: Claim repository port implementation
            identity: Resolver for caller profiles
        """
        self._repository = repository
        self._identity = identity

    async def create_claim_with_text(
        self,
        caller: Caller,
        workspace_id: str,
        visibility: Visibility = Visibility.PRIVATE,
        review_cadence: ReviewCadence = ReviewCadence.MONTHLY,
        validation_mode: ValidationMode = ValidationMode.ANY,
        text: str = "",
    ) -> str:
        """Create a claim and its first text version atomically.

        Returns:
            Identifier of the new claim
        """
        self._identity.require_authenticated(caller)
        cleaned = clean_text(text)

        async with self._repository.transaction():
            owner = await self._identity.profile_in_workspace(caller, workspace_id)
            claim = await self._repository.insert_claim(
                Claim(
                    workspace_id=workspace_id,
                    owner_profile_id=owner.id,
                    visibility=visibility,
                    review_cadence=review_cadence,
                    validation_mode=validation_mode,
                )
            )
            await self._repository.insert_text_version(
                ClaimTextVersion(claim_id=claim.id, text=cleaned, created_by_profile_id=owner.id)
            )

        logger.info(f"✅ Claim {claim.id} created in workspace {workspace_id} ({visibility.value})")
        return claim.id

    async def edit_claim_text_and_visibility(
        self,
        caller: Caller,
        claim_id: str,
        new_text: str,
        new_visibility: Visibility,
    ) -> None:
        """Append a new text version and update visibility."""
        self._identity.require_authenticated(caller)
        cleaned = clean_text(new_text)

        async with self._repository.transaction():
            claim = await load_claim(self._repository, claim_id)
            await self._identity.require_owner(caller, claim)
            require_not_retired(claim)

            author = await self._identity.profile_in_workspace(caller, claim.workspace_id)
            version = await self._repository.insert_text_version(
                ClaimTextVersion(claim_id=claim.id, text=cleaned, created_by_profile_id=author.id)
            )
            if claim.visibility != new_visibility:
                await self._repository.update_claim(claim.model_copy(update={"visibility": new_visibility}))

        logger.info(f"✅ Claim {claim_id} edited: version {version.id}, visibility={new_visibility.value}")

    async def edit_claim_validation_settings(
        self,
        caller: Caller,
        claim_id: str,
        review_cadence: ReviewCadence,
        validation_mode: ValidationMode,
    ) -> None:
        """Change review cadence and validation mode.

        An open request already satisfying the new mode closes in the same
        transaction.
        """
        self._identity.require_authenticated(caller)

        async with self._repository.transaction():
            claim = await load_claim(self._repository, claim_id)
            await self._identity.require_owner(caller, claim)
            require_not_retired(claim)
            claim = await self._repository.update_claim(
                claim.model_copy(
                    update={"review_cadence": review_cadence, "validation_mode": validation_mode}
                )
            )
            await close_if_settled(self._repository, claim)

        logger.info(
            f"✅ Claim {claim_id} settings: cadence={review_cadence.value}, mode={validation_mode.value}"
        )

    async def retire_claim(self, caller: Caller, claim_id: str) -> None:
        """Retire a claim.

        Retiring twice is rejected. A request still open at retirement is
        closed in the same transaction so no request outlives its claim.
        """
        self._identity.require_authenticated(caller)

        async with self._repository.transaction():
            claim = await load_claim(self._repository, claim_id)
            await self._identity.require_owner(caller, claim)
            if claim.is_retired:
                raise ValidationError("claim is already retired", code="claim_retired")

            now = utc_now()
            await self._repository.update_claim(claim.model_copy(update={"retired_at": now}))

            open_request = await self._repository.get_open_request(claim_id)
            if open_request is not None:
                await self._repository.update_request(
                    open_request.model_copy(
                        update={"status": RequestStatus.CLOSED, "closed_at": now}
                    )
                )
                logger.info(f"🔒 Closed open request {open_request.id} of retired claim {claim_id}")

        logger.info(f"✅ Claim {claim_id} retired")

    async def list_text_versions(self, caller: Caller, claim_id: str) -> List[ClaimTextVersion]:
        """Text history of a claim, newest first.

        Claims the caller cannot see are reported as missing.
        """
        self._identity.require_authenticated(caller)

        async with self._repository.transaction():
            claim = await load_claim(self._repository, claim_id)
            profile_ids = await self._identity.profile_ids(caller)
            if not is_visible_to(claim, profile_ids, await self._member_of(caller, claim)):
                raise NotFoundError(f"claim {claim_id} not found")
            return await self._repository.list_text_versions(claim_id)

    async def _member_of(self, caller: Caller, claim: Claim) -> bool:
        profiles = await self._repository.list_profiles_for_user(caller.user_id or "")
        return any(p.workspace_id == claim.workspace_id for p in profiles)
