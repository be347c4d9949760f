"""Domain service owning the validators entitled to answer for a claim."""

import logging
from typing import List

from ..errors import NotFoundError, ValidationError
from ..models.validation import ClaimValidator, ValidatorKind, ValidatorListing
from ..models.workspace import Caller
from ..ports.claim_repository import ClaimRepository, UniqueViolation
from .claim_service import load_claim, require_not_retired
from .identity_service import IdentityService
from .request_closing import close_if_settled

logger = logging.getLogger(__name__)


class ValidatorRegistryService:
    """Validator registry. Every operation is owner-only."""

    def __init__(self, repository: ClaimRepository, identity: IdentityService):
        """Initialize service.

        Args:
            repository: Claim repository port implementation
            identity: Resolver for caller profiles
        """
        self._repository = repository
        self._identity = identity

    async def add_claim_validator_by_email(
        self,
        caller: Caller,
        claim_id: str,
        email: str,
        kind: ValidatorKind = ValidatorKind.HUMAN,
    ) -> str:
        """Register the workspace member with ``email`` as a validator.

        Returns:
            Profile id of the registered validator

        Raises:
            NotFoundError: If no member of the claim's workspace has that email
            ValidationError: If already registered, or the claim is retired
        """
        self._identity.require_authenticated(caller)
        if not (email or "").strip():
            raise ValidationError("validator email cannot be empty", code="empty_email")

        async with self._repository.transaction():
            claim = await load_claim(self._repository, claim_id)
            await self._identity.require_owner(caller, claim)
            require_not_retired(claim)

            profile = await self._repository.find_profile_by_email(claim.workspace_id, email)
            if profile is None:
                raise NotFoundError(f"no workspace member with email {email.strip()}", code="member_not_found")

            try:
                await self._repository.insert_validator(
                    ClaimValidator(claim_id=claim_id, validator_profile_id=profile.id, kind=kind)
                )
            except UniqueViolation:
                raise ValidationError("validator already registered for this claim", code="duplicate_validator")

        logger.info(f"✅ Validator {profile.id} ({kind.value}) added to claim {claim_id}")
        return profile.id

    async def remove_claim_validator(self, caller: Caller, claim_id: str, validator_profile_id: str) -> None:
        """Unregister a validator. Removing an absent validator is a no-op.

        When the removed validator was the last one an ``all`` request was
        waiting for, that request closes in the same transaction.
        """
        self._identity.require_authenticated(caller)

        async with self._repository.transaction():
            claim = await load_claim(self._repository, claim_id)
            await self._identity.require_owner(caller, claim)
            removed = await self._repository.delete_validator(claim_id, validator_profile_id)
            if removed:
                await close_if_settled(self._repository, claim)

        if removed:
            logger.info(f"✅ Validator {validator_profile_id} removed from claim {claim_id}")
        else:
            logger.info(f"ℹ️ Validator {validator_profile_id} was not registered on claim {claim_id}")

    async def list_claim_validators(self, caller: Caller, claim_id: str) -> List[ValidatorListing]:
        """Registered validators of a claim, oldest first."""
        self._identity.require_authenticated(caller)

        async with self._repository.transaction():
            claim = await load_claim(self._repository, claim_id)
            await self._identity.require_owner(caller, claim)
            listings = []
            for validator in await self._repository.list_validators(claim_id):
                profile = await self._repository.get_profile(validator.validator_profile_id)
                listings.append(
                    ValidatorListing(
                        validator_profile_id=validator.validator_profile_id,
                        email=profile.email if profile else None,
                        kind=validator.kind,
                        created_at=validator.created_at,
                    )
                )
            return listings
