"""Domain service resolving callers to workspace-scoped profiles."""

import logging
from typing import List, Set

from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..models.claim import Claim
from ..models.workspace import Caller, Profile, Workspace
from ..ports.claim_repository import ClaimRepository, UniqueViolation

logger = logging.getLogger(__name__)


class IdentityService:
    """Identity & membership resolver.

    Every ownership check in the system goes through ``profile_ids`` and a
    set-membership test, since one user holds one profile per workspace.
    """

    def __init__(self, repository: ClaimRepository):
        """Initialize service with a repository.

        Args:
            repository: Claim repository port implementation
        """
        self._repository = repository

    @staticmethod
    def require_authenticated(caller: Caller) -> None:
        """Reject anonymous callers before any data is touched.

        Raises:
            AuthorizationError: If the caller is not authenticated
        """
        if not caller.is_authenticated:
            raise AuthorizationError("authentication required", code="unauthenticated")

    async def profile_ids(self, caller: Caller) -> Set[str]:
        """Every profile id held by the caller across workspaces."""
        self.require_authenticated(caller)
        if caller.is_scheduler:
            return set()
        profiles = await self._repository.list_profiles_for_user(caller.user_id)
        return {p.id for p in profiles}

    async def my_profile_ids(self, caller: Caller) -> List[str]:
        """Sorted profile ids of the caller."""
        async with self._repository.transaction():
            return sorted(await self.profile_ids(caller))

    async def profile_in_workspace(self, caller: Caller, workspace_id: str) -> Profile:
        """The caller's profile in a workspace.

        Raises:
            AuthorizationError: If the caller is not a member
        """
        self.require_authenticated(caller)
        if not caller.is_scheduler:
            for profile in await self._repository.list_profiles_for_user(caller.user_id):
                if profile.workspace_id == workspace_id:
                    return profile
        raise AuthorizationError("not a member of this workspace", code="not_member")

    async def owns(self, caller: Caller, claim: Claim) -> bool:
        return claim.owner_profile_id in await self.profile_ids(caller)

    async def require_owner(self, caller: Caller, claim: Claim) -> None:
        """Raises AuthorizationError unless the caller owns the claim."""
        if not await self.owns(caller, claim):
            logger.warning(f"⚠️ Non-owner call rejected for claim {claim.id}")
            raise AuthorizationError("only the claim owner may do this", code="not_owner")

    async def bootstrap_workspace(self, caller: Caller, name: str) -> str:
        """Create a workspace with the caller as its first member.

        Args:
            caller: Authenticated caller
            name: Workspace display name

        Returns:
            Identifier of the new workspace
        """
        self.require_authenticated(caller)
        if caller.is_scheduler:
            raise AuthorizationError("scheduler cannot create workspaces", code="not_user")
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("workspace name cannot be empty", code="empty_name")

        async with self._repository.transaction():
            workspace = await self._repository.insert_workspace(Workspace(name=cleaned))
            await self.add_member(workspace.id, caller.user_id, caller.email or "")

        logger.info(f"✅ Workspace '{cleaned}' bootstrapped: {workspace.id}")
        return workspace.id

    async def add_member(self, workspace_id: str, user_id: str, email: str) -> Profile:
        """Create the profile of a user in a workspace.

        Membership management happens outside this service; this is the
        storage-level hook used by onboarding and provisioning.

        Raises:
            NotFoundError: If the workspace does not exist
            ValidationError: If the user already has a profile there
        """
        async with self._repository.transaction():
            if await self._repository.get_workspace(workspace_id) is None:
                raise NotFoundError(f"workspace {workspace_id} not found")
            try:
                return await self._repository.insert_profile(
                    Profile(workspace_id=workspace_id, user_id=user_id, email=email.strip())
                )
            except UniqueViolation:
                raise ValidationError("user is already a member of this workspace", code="duplicate_member")

    async def my_workspaces(self, caller: Caller) -> List[Workspace]:
        """Workspaces the caller belongs to, by name."""
        self.require_authenticated(caller)
        async with self._repository.transaction():
            workspaces = []
            if not caller.is_scheduler:
                for profile in await self._repository.list_profiles_for_user(caller.user_id):
                    workspace = await self._repository.get_workspace(profile.workspace_id)
                    if workspace is not None:
                        workspaces.append(workspace)
        return sorted(workspaces, key=lambda w: w.name)
