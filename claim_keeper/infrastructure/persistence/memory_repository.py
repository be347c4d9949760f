"""In-memory adapter implementation of the claim repository port."""

import asyncio
import contextlib
import logging
from contextvars import ContextVar
from datetime import datetime, timedelta
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from ...domain.errors import ConflictError
from ...domain.models.claim import Claim, ClaimTextVersion
from ...domain.models.validation import (
    ClaimValidator,
    RequestStatus,
    ValidationRequest,
    ValidationResponse,
)
from ...domain.models.workspace import Profile, Workspace, utc_now
from ...domain.ports.claim_repository import (
    ONE_OPEN_REQUEST_PER_CLAIM,
    ONE_PROFILE_PER_USER_PER_WORKSPACE,
    ONE_RESPONSE_PER_RESPONDER,
    UNIQUE_CLAIM_VALIDATOR,
    ClaimRepository,
    UniqueViolation,
)

logger = logging.getLogger(__name__)

_TICK = timedelta(microseconds=1)


class MemoryRepositoryConfig(BaseModel):
    """Configuration for the in-memory repository."""

    transaction_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Seconds to wait for the write lock before giving up",
    )


class InMemoryClaimRepository(ClaimRepository):
    """Process-local storage with serialized transactions.

    Tables are plain dicts of immutable models. Uniqueness constraints are
    kept as index tables and checked at insert time. A transaction holds a
    single asyncio lock and snapshots every table so that an exception
    restores the exact prior state.
    """

    _TABLES = (
        "workspaces",
        "profiles",
        "profile_by_user_workspace",
        "claims",
        "versions",
        "validators",
        "requests",
        "open_request_by_claim",
        "responses",
        "response_by_responder",
    )

    def __init__(
        self,
        config: Optional[MemoryRepositoryConfig] = None,
        backend_name: str = "memory",
        **options: Any,
    ):
        """Initialize the repository.

        Args:
            config: Repository configuration
            backend_name: Name reported by the health endpoint
            **options: ``MemoryRepositoryConfig`` fields, used when ``config`` is omitted
        """
        self._config = config or MemoryRepositoryConfig(**options)
        self._name = backend_name
        self._lock = asyncio.Lock()
        self._in_transaction: ContextVar[bool] = ContextVar(
            f"claim_keeper_tx_{id(self)}", default=False
        )
        self._tables: Dict[str, Dict[Any, Any]] = {name: {} for name in self._TABLES}
        self._last_stamp: Optional[datetime] = None
        self._initialized = False

    async def initialize(self) -> None:
        """Mark the repository ready."""
        self._initialized = True
        logger.info(f"🗄️ In-memory repository ready (timeout={self._config.transaction_timeout}s)")

    async def shutdown(self) -> None:
        """Drop all stored data."""
        self._tables = {name: {} for name in self._TABLES}
        self._initialized = False
        logger.info("🔄 In-memory repository shut down")

    @property
    def backend_name(self) -> str:
        return self._name

    @property
    def is_available(self) -> bool:
        return self._initialized

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator["InMemoryClaimRepository"]:
        if self._in_transaction.get():
            # Join the enclosing unit of work.
            yield self
            return

        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=self._config.transaction_timeout)
        except asyncio.TimeoutError:
            logger.warning("⚠️ Timed out waiting for repository write lock")
            raise ConflictError(
                "storage is busy, retry the operation",
                code="transaction_timeout",
            )

        token = self._in_transaction.set(True)
        snapshot = {name: dict(table) for name, table in self._tables.items()}
        last_stamp = self._last_stamp
        try:
            yield self
        except BaseException:
            self._tables = snapshot
            self._last_stamp = last_stamp
            logger.debug("↩️ Transaction rolled back")
            raise
        finally:
            self._in_transaction.reset(token)
            self._lock.release()

    def _stamp(self, requested: Optional[datetime] = None) -> datetime:
        """Return a timestamp strictly after every earlier stamp."""
        stamp = requested or utc_now()
        if self._last_stamp is not None and stamp <= self._last_stamp:
            stamp = self._last_stamp + _TICK
        self._last_stamp = stamp
        return stamp

    @property
    def _t(self) -> Dict[str, Dict[Any, Any]]:
        return self._tables

    # Workspaces and profiles

    async def insert_workspace(self, workspace: Workspace) -> Workspace:
        self._t["workspaces"][workspace.id] = workspace
        return workspace

    async def get_workspace(self, workspace_id: str) -> Optional[Workspace]:
        return self._t["workspaces"].get(workspace_id)

    async def insert_profile(self, profile: Profile) -> Profile:
        key = (profile.workspace_id, profile.user_id)
        if key in self._t["profile_by_user_workspace"]:
            raise UniqueViolation(ONE_PROFILE_PER_USER_PER_WORKSPACE)
        self._t["profiles"][profile.id] = profile
        self._t["profile_by_user_workspace"][key] = profile.id
        return profile

    async def get_profile(self, profile_id: str) -> Optional[Profile]:
        return self._t["profiles"].get(profile_id)

    async def list_profiles_for_user(self, user_id: str) -> List[Profile]:
        return [p for p in self._t["profiles"].values() if p.user_id == user_id]

    async def find_profile_by_email(self, workspace_id: str, email: str) -> Optional[Profile]:
        wanted = email.strip().lower()
        for profile in self._t["profiles"].values():
            if profile.workspace_id == workspace_id and profile.email.strip().lower() == wanted:
                return profile
        return None

    # Claims and text history

    async def insert_claim(self, claim: Claim) -> Claim:
        claim = claim.model_copy(update={"created_at": self._stamp(claim.created_at)})
        self._t["claims"][claim.id] = claim
        return claim

    async def update_claim(self, claim: Claim) -> Claim:
        if claim.id not in self._t["claims"]:
            raise KeyError(f"Claim {claim.id} not stored")
        self._t["claims"][claim.id] = claim
        return claim

    async def get_claim(self, claim_id: str) -> Optional[Claim]:
        return self._t["claims"].get(claim_id)

    async def list_claims(self, workspace_id: str) -> List[Claim]:
        claims = [c for c in self._t["claims"].values() if c.workspace_id == workspace_id]
        return sorted(claims, key=lambda c: c.created_at, reverse=True)

    async def insert_text_version(self, version: ClaimTextVersion) -> ClaimTextVersion:
        version = version.model_copy(update={"created_at": self._stamp(version.created_at)})
        self._t["versions"][version.id] = version
        logger.debug(f"📝 Stored text version {version.id} for claim {version.claim_id}")
        return version

    async def get_text_version(self, version_id: str) -> Optional[ClaimTextVersion]:
        return self._t["versions"].get(version_id)

    async def list_text_versions(self, claim_id: str) -> List[ClaimTextVersion]:
        versions = [v for v in self._t["versions"].values() if v.claim_id == claim_id]
        return sorted(versions, key=lambda v: v.created_at, reverse=True)

    # Validators

    async def insert_validator(self, validator: ClaimValidator) -> ClaimValidator:
        key = (validator.claim_id, validator.validator_profile_id)
        if key in self._t["validators"]:
            raise UniqueViolation(UNIQUE_CLAIM_VALIDATOR)
        validator = validator.model_copy(update={"created_at": self._stamp(validator.created_at)})
        self._t["validators"][key] = validator
        return validator

    async def delete_validator(self, claim_id: str, validator_profile_id: str) -> bool:
        return self._t["validators"].pop((claim_id, validator_profile_id), None) is not None

    async def list_validators(self, claim_id: str) -> List[ClaimValidator]:
        validators = [v for (cid, _), v in self._t["validators"].items() if cid == claim_id]
        return sorted(validators, key=lambda v: v.created_at)

    async def list_validator_entries_for_profile(self, profile_id: str) -> List[ClaimValidator]:
        return [v for (_, pid), v in self._t["validators"].items() if pid == profile_id]

    # Validation requests and responses

    async def insert_request(self, request: ValidationRequest) -> ValidationRequest:
        if request.status == RequestStatus.OPEN and request.claim_id in self._t["open_request_by_claim"]:
            raise UniqueViolation(ONE_OPEN_REQUEST_PER_CLAIM)
        request = request.model_copy(update={"created_at": self._stamp(request.created_at)})
        self._t["requests"][request.id] = request
        if request.status == RequestStatus.OPEN:
            self._t["open_request_by_claim"][request.claim_id] = request.id
        return request

    async def update_request(self, request: ValidationRequest) -> ValidationRequest:
        stored = self._t["requests"].get(request.id)
        if stored is None:
            raise KeyError(f"Validation request {request.id} not stored")
        open_index = self._t["open_request_by_claim"]
        if request.status == RequestStatus.OPEN:
            holder = open_index.get(request.claim_id)
            if holder is not None and holder != request.id:
                raise UniqueViolation(ONE_OPEN_REQUEST_PER_CLAIM)
            open_index[request.claim_id] = request.id
        elif open_index.get(request.claim_id) == request.id:
            del open_index[request.claim_id]
        if request.closed_at is not None and stored.closed_at is None:
            request = request.model_copy(update={"closed_at": self._stamp(request.closed_at)})
        self._t["requests"][request.id] = request
        return request

    async def get_request(self, request_id: str) -> Optional[ValidationRequest]:
        return self._t["requests"].get(request_id)

    async def get_open_request(self, claim_id: str) -> Optional[ValidationRequest]:
        request_id = self._t["open_request_by_claim"].get(claim_id)
        return self._t["requests"].get(request_id) if request_id else None

    async def list_requests(self, claim_id: str) -> List[ValidationRequest]:
        requests = [r for r in self._t["requests"].values() if r.claim_id == claim_id]
        return sorted(requests, key=lambda r: r.created_at, reverse=True)

    async def list_requests_by_fallback_recipient(self, profile_id: str) -> List[ValidationRequest]:
        return [
            r for r in self._t["requests"].values()
            if r.fallback_recipient_profile_id == profile_id
        ]

    async def insert_response(self, response: ValidationResponse) -> ValidationResponse:
        key: Tuple[str, str] = (response.request_id, response.responder_profile_id)
        if key in self._t["response_by_responder"]:
            raise UniqueViolation(ONE_RESPONSE_PER_RESPONDER)
        response = response.model_copy(update={"created_at": self._stamp(response.created_at)})
        self._t["responses"][response.id] = response
        self._t["response_by_responder"][key] = response.id
        return response

    async def list_responses(self, request_id: str) -> List[ValidationResponse]:
        responses = [r for r in self._t["responses"].values() if r.request_id == request_id]
        return sorted(responses, key=lambda r: r.created_at)
