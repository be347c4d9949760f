"""Domain models for workspaces, profiles and callers."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field


def new_id() -> str:
    """Generate a new entity identifier."""
    return str(uuid4())


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class WorkspaceStatus(str, Enum):
    """Lifecycle status of a workspace."""

    ACTIVE = "active"
    SUSPENDED = "suspended"


class Workspace(BaseModel):
    """A tenant boundary. Claims and profiles belong to exactly one workspace."""

    id: str = Field(default_factory=new_id, description="Workspace identifier")
    name: str = Field(..., description="Display name")
    status: WorkspaceStatus = Field(default=WorkspaceStatus.ACTIVE, description="Workspace status")
    created_at: datetime = Field(default_factory=utc_now, description="When the workspace was created")

    class Config:
        """Pydantic model configuration."""
        frozen = True


class Profile(BaseModel):
    """A workspace-scoped identity of an authenticated user.

    Ownership is always recorded against a profile, never a bare user id.
    """

    id: str = Field(default_factory=new_id, description="Profile identifier")
    workspace_id: str = Field(..., description="Workspace the profile belongs to")
    user_id: str = Field(..., description="Authenticated user behind the profile")
    email: str = Field(..., description="Email used for validator lookup and reminders")

    class Config:
        """Pydantic model configuration."""
        frozen = True


class Caller(BaseModel):
    """The authenticated principal invoking an operation.

    ``user_id`` is None for anonymous callers. The scheduler principal is the
    external timer service that opens scheduled validation requests.
    """

    user_id: Optional[str] = None
    email: Optional[str] = None
    is_scheduler: bool = False

    class Config:
        """Pydantic model configuration."""
        frozen = True

    @classmethod
    def anonymous(cls) -> "Caller":
        return cls()

    @classmethod
    def user(cls, user_id: str, email: Optional[str] = None) -> "Caller":
        return cls(user_id=user_id, email=email)

    @classmethod
    def scheduler(cls) -> "Caller":
        return cls(is_scheduler=True)

    @property
    def is_authenticated(self) -> bool:
        return self.is_scheduler or bool(self.user_id)
