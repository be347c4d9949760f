"""Closing rule for open validation requests.

A request can become settled without a new response: removing the last
validator who had not answered, or switching a claim from ``all`` to
``any``, both leave a request whose rule is already met.
"""

import logging
from typing import Optional, Set

from ..models.claim import Claim, ValidationMode
from ..models.validation import RequestStatus, ValidationRequest
from ..models.workspace import utc_now
from ..ports.claim_repository import ClaimRepository

logger = logging.getLogger(__name__)


def closing_condition_met(
    mode: ValidationMode,
    registered_validator_ids: Set[str],
    responder_ids: Set[str],
) -> bool:
    """Whether a request should close given who has answered.

    ``any`` closes on the first response. ``all`` closes once every
    currently registered validator has answered.
    """
    if not responder_ids:
        return False
    if mode == ValidationMode.ANY:
        return True
    return registered_validator_ids <= responder_ids


async def close_if_settled(repository: ClaimRepository, claim: Claim) -> Optional[ValidationRequest]:
    """Close the claim's open request when its closing rule is met.

    Must run inside the caller's transaction, after the registry, the mode
    or the responses have changed.

    Returns:
        The closed request, or None when nothing was closed
    """
    request = await repository.get_open_request(claim.id)
    if request is None:
        return None

    registered = {v.validator_profile_id for v in await repository.list_validators(claim.id)}
    responders = {r.responder_profile_id for r in await repository.list_responses(request.id)}
    if not closing_condition_met(claim.validation_mode, registered, responders):
        return None

    closed = await repository.update_request(
        request.model_copy(
            update={
                "status": RequestStatus.CLOSED,
                "closed_at": utc_now(),
                "closing_mode": claim.validation_mode,
            }
        )
    )
    logger.info(f"🔒 Request {request.id} closed under '{claim.validation_mode.value}' mode")
    return closed
