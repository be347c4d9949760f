"""Domain models for claims and their text history."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .workspace import new_id, utc_now


class Visibility(str, Enum):
    """Who may see a claim."""

    PRIVATE = "private"  # Owner only
    WORKSPACE = "workspace"  # Every member of the workspace


class ReviewCadence(str, Enum):
    """Intended frequency of scheduled validation requests."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    CUSTOM = "custom"


class ValidationMode(str, Enum):
    """How many validators must answer before a request closes."""

    ANY = "any"  # First response closes the request
    ALL = "all"  # Every registered validator must respond


class ClaimState(str, Enum):
    """Owner-only derived label summarizing the latest validation outcome."""

    AFFIRMED = "Affirmed"
    UNCONFIRMED = "Unconfirmed"
    CHALLENGED = "Challenged"
    RETIRED = "Retired"


class Claim(BaseModel):
    """An assertion tracked for periodic truth validation."""

    id: str = Field(default_factory=new_id, description="Claim identifier")
    workspace_id: str = Field(..., description="Owning workspace")
    owner_profile_id: str = Field(..., description="Profile that owns the claim")
    visibility: Visibility = Field(default=Visibility.PRIVATE, description="Claim visibility")
    review_cadence: ReviewCadence = Field(default=ReviewCadence.MONTHLY, description="Review cadence")
    validation_mode: ValidationMode = Field(default=ValidationMode.ANY, description="Closing rule for requests")
    created_at: datetime = Field(default_factory=utc_now, description="When the claim was created")
    retired_at: Optional[datetime] = Field(None, description="Set once the claim is retired")

    class Config:
        """Pydantic model configuration."""
        frozen = True
        json_schema_extra = {
            "example": {
                "workspace_id": "6c1f1a2e-0000-4000-8000-000000000001",
                "owner_profile_id": "6c1f1a2e-0000-4000-8000-000000000002",
                "visibility": "workspace",
                "review_cadence": "monthly",
                "validation_mode": "any",
            }
        }

    @property
    def is_retired(self) -> bool:
        return self.retired_at is not None


class ClaimTextVersion(BaseModel):
    """Immutable wording of a claim at a point in time."""

    id: str = Field(default_factory=new_id, description="Version identifier")
    claim_id: str = Field(..., description="Claim the text belongs to")
    text: str = Field(..., description="Claim wording")
    created_at: datetime = Field(default_factory=utc_now, description="When the wording was recorded")
    created_by_profile_id: Optional[str] = Field(None, description="Profile that wrote the wording")

    class Config:
        """Pydantic model configuration."""
        frozen = True


class MemberClaimView(BaseModel):
    """Member-safe projection of a claim.

    Carries no derived state, validator list or validation summary.
    """

    claim_id: str
    workspace_id: str
    owner_profile_id: str
    owner_email: Optional[str] = None
    visibility: Visibility
    review_cadence: ReviewCadence
    validation_mode: ValidationMode
    created_at: datetime
    retired_at: Optional[datetime] = None
    current_text: Optional[str] = None


class ClaimStateRow(BaseModel):
    """Derived state of one claim, returned to its owner."""

    claim_id: str
    state: ClaimState
