"""Member-safe read projection of claims."""

import logging
from typing import Iterable, List

from ..models.claim import Claim, MemberClaimView, Visibility
from ..models.workspace import Caller
from ..ports.claim_repository import ClaimRepository
from .identity_service import IdentityService

logger = logging.getLogger(__name__)


def is_visible_to(claim: Claim, profile_ids: Iterable[str], is_member: bool) -> bool:
    """Workspace claims are visible to members; private ones only to their owner."""
    if not is_member:
        return False
    return claim.visibility == Visibility.WORKSPACE or claim.owner_profile_id in set(profile_ids)


class VisibilityService:
    """Visibility projector.

    Produces ``MemberClaimView`` rows, which have no room for derived
    state, validators or validation summaries.
    """

    def __init__(self, repository: ClaimRepository, identity: IdentityService):
        """Initialize service.

        Args:
            repository: Claim repository port implementation
            identity: Resolver for caller profiles
        """
        self._repository = repository
        self._identity = identity

    async def claims_visible_to_member(
        self,
        caller: Caller,
        workspace_id: str,
        include_retired: bool = False,
    ) -> List[MemberClaimView]:
        """Claims of a workspace the caller may see, newest first."""
        self._identity.require_authenticated(caller)

        async with self._repository.transaction():
            await self._identity.profile_in_workspace(caller, workspace_id)
            profile_ids = await self._identity.profile_ids(caller)

            views = []
            for claim in await self._repository.list_claims(workspace_id):
                if claim.is_retired and not include_retired:
                    continue
                if not is_visible_to(claim, profile_ids, is_member=True):
                    continue
                versions = await self._repository.list_text_versions(claim.id)
                owner = await self._repository.get_profile(claim.owner_profile_id)
                views.append(
                    MemberClaimView(
                        claim_id=claim.id,
                        workspace_id=claim.workspace_id,
                        owner_profile_id=claim.owner_profile_id,
                        owner_email=owner.email if owner else None,
                        visibility=claim.visibility,
                        review_cadence=claim.review_cadence,
                        validation_mode=claim.validation_mode,
                        created_at=claim.created_at,
                        retired_at=claim.retired_at,
                        current_text=versions[0].text if versions else None,
                    )
                )

        logger.info(f"📋 {len(views)} claim(s) visible in workspace {workspace_id}")
        return views
