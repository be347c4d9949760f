"""Notifier adapter that records notification decisions in the log."""

import logging
from collections import deque
from datetime import datetime
from typing import Deque, List, Optional

from pydantic import BaseModel, Field

from ...domain.models.validation import PendingRecipient, ValidationRequest
from ...domain.models.workspace import utc_now
from ...domain.ports.notifier import ValidationNotifier

logger = logging.getLogger(__name__)


class OutboxEntry(BaseModel):
    """A notification the service decided to send."""

    event: str = Field(..., description="opened or reminder")
    request_id: str
    claim_id: str
    attempt_count: int
    recipients: List[PendingRecipient] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)


class LoggingNotifier(ValidationNotifier):
    """Logs each decision and keeps a bounded in-memory outbox.

    Delivery is left to whatever consumes the outbox or the logs.
    """

    def __init__(self, outbox_size: int = 500):
        self._outbox: Deque[OutboxEntry] = deque(maxlen=outbox_size)

    async def notify_request_opened(
        self,
        request: ValidationRequest,
        recipients: List[PendingRecipient],
    ) -> None:
        self._record("opened", request, recipients)

    async def notify_reminder(
        self,
        request: ValidationRequest,
        recipients: List[PendingRecipient],
    ) -> None:
        self._record("reminder", request, recipients)

    def _record(self, event: str, request: ValidationRequest, recipients: List[PendingRecipient]) -> None:
        emails = sorted({r.pending_validator_email for r in recipients if r.pending_validator_email})
        logger.info(
            f"📨 {event} notification for request {request.id} "
            f"(attempt {request.attempt_count}): {len(recipients)} recipient(s) {emails}"
        )
        self._outbox.append(
            OutboxEntry(
                event=event,
                request_id=request.id,
                claim_id=request.claim_id,
                attempt_count=request.attempt_count,
                recipients=list(recipients),
            )
        )

    def outbox(self, request_id: Optional[str] = None) -> List[OutboxEntry]:
        """Recorded notifications, oldest first, optionally for one request."""
        return [e for e in self._outbox if request_id is None or e.request_id == request_id]
