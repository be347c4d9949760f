"""Port interface for claim keeper persistence."""

from abc import ABC, abstractmethod
from typing import AsyncContextManager, List, Optional

from ..models.claim import Claim, ClaimTextVersion
from ..models.validation import ClaimValidator, ValidationRequest, ValidationResponse
from ..models.workspace import Profile, Workspace


class UniqueViolation(Exception):
    """Raised by a repository when an insert breaks a uniqueness constraint."""

    def __init__(self, constraint: str, message: Optional[str] = None):
        super().__init__(message or f"unique constraint violated: {constraint}")
        self.constraint = constraint


# Constraint names shared by every adapter.
ONE_OPEN_REQUEST_PER_CLAIM = "validation_requests_one_open_per_claim"
ONE_RESPONSE_PER_RESPONDER = "validation_responses_one_per_responder"
UNIQUE_CLAIM_VALIDATOR = "claim_validators_unique"
ONE_PROFILE_PER_USER_PER_WORKSPACE = "profiles_one_per_user_per_workspace"


class ClaimRepository(ABC):
    """Abstract interface for claim keeper storage.

    This port defines the data operations the domain services need.
    Adapters must enforce the uniqueness constraints above at write time and
    make ``transaction()`` atomic: either every write inside it is committed
    or none is.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the storage backend."""
        pass

    @abstractmethod
    async def shutdown(self) -> None:
        """Release storage resources."""
        pass

    @abstractmethod
    def transaction(self) -> AsyncContextManager["ClaimRepository"]:
        """Open a serializable unit of work.

        Nested calls join the enclosing transaction. Any exception raised
        inside the block rolls back every write made in it.
        """
        pass

    # Workspaces and profiles

    @abstractmethod
    async def insert_workspace(self, workspace: Workspace) -> Workspace:
        pass

    @abstractmethod
    async def get_workspace(self, workspace_id: str) -> Optional[Workspace]:
        pass

    @abstractmethod
    async def insert_profile(self, profile: Profile) -> Profile:
        """Store a profile; one per (workspace_id, user_id)."""
        pass

    @abstractmethod
    async def get_profile(self, profile_id: str) -> Optional[Profile]:
        pass

    @abstractmethod
    async def list_profiles_for_user(self, user_id: str) -> List[Profile]:
        pass

    @abstractmethod
    async def find_profile_by_email(self, workspace_id: str, email: str) -> Optional[Profile]:
        """Case-insensitive email lookup within one workspace."""
        pass

    # Claims and text history

    @abstractmethod
    async def insert_claim(self, claim: Claim) -> Claim:
        pass

    @abstractmethod
    async def update_claim(self, claim: Claim) -> Claim:
        pass

    @abstractmethod
    async def get_claim(self, claim_id: str) -> Optional[Claim]:
        pass

    @abstractmethod
    async def list_claims(self, workspace_id: str) -> List[Claim]:
        """Claims of a workspace, newest first."""
        pass

    @abstractmethod
    async def insert_text_version(self, version: ClaimTextVersion) -> ClaimTextVersion:
        """Append a version; returned created_at is strictly after every earlier version."""
        pass

    @abstractmethod
    async def get_text_version(self, version_id: str) -> Optional[ClaimTextVersion]:
        pass

    @abstractmethod
    async def list_text_versions(self, claim_id: str) -> List[ClaimTextVersion]:
        """Versions of a claim, newest first."""
        pass

    # Validators

    @abstractmethod
    async def insert_validator(self, validator: ClaimValidator) -> ClaimValidator:
        """Register a validator; one per (claim_id, validator_profile_id)."""
        pass

    @abstractmethod
    async def delete_validator(self, claim_id: str, validator_profile_id: str) -> bool:
        """Remove a validator. Returns False when nothing was registered."""
        pass

    @abstractmethod
    async def list_validators(self, claim_id: str) -> List[ClaimValidator]:
        pass

    @abstractmethod
    async def list_validator_entries_for_profile(self, profile_id: str) -> List[ClaimValidator]:
        """Every claim a profile is registered to validate."""
        pass

    # Validation requests and responses

    @abstractmethod
    async def insert_request(self, request: ValidationRequest) -> ValidationRequest:
        """Store a request; at most one open request per claim."""
        pass

    @abstractmethod
    async def update_request(self, request: ValidationRequest) -> ValidationRequest:
        pass

    @abstractmethod
    async def get_request(self, request_id: str) -> Optional[ValidationRequest]:
        pass

    @abstractmethod
    async def get_open_request(self, claim_id: str) -> Optional[ValidationRequest]:
        pass

    @abstractmethod
    async def list_requests(self, claim_id: str) -> List[ValidationRequest]:
        """Requests of a claim, newest first."""
        pass

    @abstractmethod
    async def list_requests_by_fallback_recipient(self, profile_id: str) -> List[ValidationRequest]:
        pass

    @abstractmethod
    async def insert_response(self, response: ValidationResponse) -> ValidationResponse:
        """Store a response; at most one per (request_id, responder_profile_id)."""
        pass

    @abstractmethod
    async def list_responses(self, request_id: str) -> List[ValidationResponse]:
        """Responses to a request, oldest first."""
        pass

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Name of the storage backend."""
        pass
