"""Domain models for validators, validation requests and responses."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .claim import ValidationMode, Visibility
from .workspace import new_id, utc_now


class ValidatorKind(str, Enum):
    """Kind of party entitled to validate a claim."""

    HUMAN = "human"
    AUTOMATED = "automated"


class RequestKind(str, Enum):
    """What triggered a validation request."""

    SCHEDULED = "scheduled"  # Opened by the external timer service
    MANUAL = "manual"  # Opened by the owner on demand


class RequestStatus(str, Enum):
    """Validation request states. Open moves to closed exactly once."""

    OPEN = "open"
    CLOSED = "closed"


class Answer(str, Enum):
    """A validator's answer to "is this claim still true?"."""

    YES = "yes"
    UNSURE = "unsure"
    NO = "no"


class ClaimValidator(BaseModel):
    """A profile entitled to validate a claim."""

    claim_id: str = Field(..., description="Claim being validated")
    validator_profile_id: str = Field(..., description="Entitled validator profile")
    kind: ValidatorKind = Field(default=ValidatorKind.HUMAN, description="Validator kind")
    created_at: datetime = Field(default_factory=utc_now, description="When the validator was added")

    class Config:
        """Pydantic model configuration."""
        frozen = True


class ValidationRequest(BaseModel):
    """One round of asking validators whether a claim is still true."""

    id: str = Field(default_factory=new_id, description="Request identifier")
    claim_id: str = Field(..., description="Claim under validation")
    claim_text_version_id: str = Field(..., description="Exact wording being judged")
    kind: RequestKind = Field(default=RequestKind.MANUAL, description="Trigger kind")
    status: RequestStatus = Field(default=RequestStatus.OPEN, description="Request status")
    created_at: datetime = Field(default_factory=utc_now, description="When the request was opened")
    closed_at: Optional[datetime] = Field(None, description="When the request was closed")
    attempt_count: int = Field(default=1, ge=0, description="Notification attempts so far")
    fallback_recipient_profile_id: Optional[str] = Field(
        None,
        description="Owner profile added as sole recipient when the claim had no validators",
    )
    closing_mode: Optional[ValidationMode] = Field(
        None,
        description="Validation mode in force when the request closed",
    )

    class Config:
        """Pydantic model configuration."""
        frozen = True

    @property
    def is_open(self) -> bool:
        return self.status == RequestStatus.OPEN


class ValidationResponse(BaseModel):
    """One validator's answer to one request."""

    id: str = Field(default_factory=new_id, description="Response identifier")
    request_id: str = Field(..., description="Request being answered")
    responder_profile_id: str = Field(..., description="Profile that answered")
    answer: Answer = Field(..., description="The answer given")
    context: Optional[str] = Field(None, description="Optional free-text context")
    created_at: datetime = Field(default_factory=utc_now, description="When the answer was recorded")

    class Config:
        """Pydantic model configuration."""
        frozen = True


class ValidatorListing(BaseModel):
    """Owner-only view of one registered validator."""

    validator_profile_id: str
    email: Optional[str] = None
    kind: ValidatorKind
    created_at: datetime


class PendingRecipient(BaseModel):
    """A validator who has not answered the open request yet."""

    request_id: str
    pending_validator_profile_id: str
    pending_validator_email: Optional[str] = None


class ValidationSummary(BaseModel):
    """Owner-only validation counts for one claim."""

    claim_id: str
    total_requests: int = 0
    open_requests: int = 0
    closed_requests: int = 0
    total_responses: int = 0
    yes_count: int = 0
    unsure_count: int = 0
    no_count: int = 0


class ValidationInboxItem(BaseModel):
    """A validation request addressed to the caller."""

    request_id: str
    claim_id: str
    claim_text_version_id: str
    kind: RequestKind
    status: RequestStatus
    attempt_count: int
    created_at: datetime
    closed_at: Optional[datetime] = None
    workspace_id: str
    visibility: Visibility
    owner_profile_id: str
    claim_text: str
    my_answer: Optional[Answer] = None
