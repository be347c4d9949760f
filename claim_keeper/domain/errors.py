"""Domain errors raised by claim keeper services.

Every error carries a stable ``code`` so callers can branch on the kind of
failure instead of matching message text.
"""

from typing import Optional


class ClaimKeeperError(Exception):
    """Base class for all domain errors."""

    code: str = "error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        """Serialize the error for API responses."""
        return {"code": self.code, "message": self.message}


class AuthorizationError(ClaimKeeperError):
    """Caller is unauthenticated, not the owner, or not an entitled validator."""

    code = "not_authorized"


class ValidationError(ClaimKeeperError):
    """Request is well-formed but violates a domain rule."""

    code = "invalid"


class NotFoundError(ClaimKeeperError):
    """Referenced workspace, claim, request or profile does not exist."""

    code = "not_found"


class ConflictError(ClaimKeeperError):
    """Operation collided with concurrent state."""

    code = "conflict"


class OpenRequestExistsError(ConflictError):
    """A claim already has an open validation request.

    Callers are expected to catch this and switch to the remind flow.
    """

    code = "open_request_exists"

    def __init__(self, claim_id: str):
        super().__init__("open validation request already exists")
        self.claim_id = claim_id
