"""Port interface for validation notifications."""

from abc import ABC, abstractmethod
from typing import List

from ..models.validation import PendingRecipient, ValidationRequest


class ValidationNotifier(ABC):
    """Abstract interface for telling validators about requests.

    Only the decision to notify is made by the domain; delivery (email,
    chat, webhooks) belongs to the adapter.
    """

    @abstractmethod
    async def notify_request_opened(
        self,
        request: ValidationRequest,
        recipients: List[PendingRecipient],
    ) -> None:
        """Announce a newly opened request to every recipient."""
        pass

    @abstractmethod
    async def notify_reminder(
        self,
        request: ValidationRequest,
        recipients: List[PendingRecipient],
    ) -> None:
        """Remind validators who have not answered yet."""
        pass
