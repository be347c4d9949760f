"""Tests for the validation workflow engine."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from claim_keeper.domain.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    OpenRequestExistsError,
    ValidationError,
)
from claim_keeper.domain.models.claim import ClaimState, ReviewCadence, ValidationMode
from claim_keeper.domain.models.validation import Answer, RequestKind, RequestStatus
from claim_keeper.domain.models.workspace import Caller
from claim_keeper.domain.ports.notifier import ValidationNotifier
from claim_keeper.domain.services.request_closing import closing_condition_met
from claim_keeper.domain.services.validation_workflow_service import ValidationWorkflowService


class TestClosingCondition:
    """Tests for the closing rule."""

    def test_any_closes_on_first_response(self):
        assert closing_condition_met(ValidationMode.ANY, {"a", "b"}, {"a"})

    def test_any_needs_a_response(self):
        assert not closing_condition_met(ValidationMode.ANY, {"a"}, set())

    def test_all_waits_for_every_validator(self):
        assert not closing_condition_met(ValidationMode.ALL, {"a", "b"}, {"a"})
        assert closing_condition_met(ValidationMode.ALL, {"a", "b"}, {"a", "b"})

    def test_all_uses_live_registry(self):
        """A responder who was removed from the registry does not block closing."""
        assert closing_condition_met(ValidationMode.ALL, {"b"}, {"a", "b"})


@pytest.mark.asyncio
async def test_any_mode_closes_on_first_response(container, team, make_claim, repository):
    """First answer closes an ``any`` request; later answers see it closed."""
    claim_id = await make_claim(validators=("alice@example.com", "bob@example.com"))
    workflow = container.validation_workflow_service
    request_id = await workflow.open_validation_request(team.owner, claim_id)

    request = await workflow.submit_validation_response(team.alice, request_id, Answer.YES)
    assert request.status == RequestStatus.CLOSED
    assert request.closed_at is not None
    assert request.closing_mode == ValidationMode.ANY

    with pytest.raises(ValidationError) as exc_info:
        await workflow.submit_validation_response(team.bob, request_id, Answer.NO)
    assert exc_info.value.code == "request_not_open"

    assert len(await repository.list_responses(request_id)) == 1


@pytest.mark.asyncio
async def test_all_mode_waits_then_challenges(container, team, make_claim):
    """``all`` stays open until every validator answers; a "no" challenges."""
    claim_id = await make_claim(
        validation_mode=ValidationMode.ALL,
        validators=("alice@example.com", "bob@example.com"),
    )
    workflow = container.validation_workflow_service
    request_id = await workflow.open_validation_request(team.owner, claim_id)

    first = await workflow.submit_validation_response(team.alice, request_id, Answer.YES)
    assert first.status == RequestStatus.OPEN

    second = await workflow.submit_validation_response(team.bob, request_id, Answer.NO, "Pricing changed")
    assert second.status == RequestStatus.CLOSED

    state = await container.claim_state_service.get_claim_state(team.owner, claim_id)
    assert state.state == ClaimState.CHALLENGED


@pytest.mark.asyncio
async def test_second_open_conflicts_then_remind(container, team, make_claim, repository):
    """A second open fails with the distinguishable conflict; remind lists the pending."""
    claim_id = await make_claim(
        validation_mode=ValidationMode.ALL,
        validators=("alice@example.com", "bob@example.com"),
    )
    workflow = container.validation_workflow_service
    request_id = await workflow.open_validation_request(team.owner, claim_id)

    with pytest.raises(OpenRequestExistsError) as exc_info:
        await workflow.open_validation_request(team.owner, claim_id)
    assert exc_info.value.code == "open_request_exists"
    assert "open validation request already exists" in str(exc_info.value)
    assert isinstance(exc_info.value, ConflictError)

    await workflow.submit_validation_response(team.alice, request_id, Answer.YES)
    pending = await workflow.remind_open_validation_request(team.owner, claim_id)

    assert [(p.request_id, p.pending_validator_profile_id, p.pending_validator_email) for p in pending] == [
        (request_id, team.bob_profile_id, "bob@example.com")
    ]
    assert (await repository.get_request(request_id)).attempt_count == 2


@pytest.mark.asyncio
async def test_remind_with_nobody_pending_returns_empty(container, team, make_claim, repository):
    """Nothing to remind is a normal outcome and does not count as an attempt."""
    claim_id = await make_claim(validators=("alice@example.com",))
    workflow = container.validation_workflow_service
    request_id = await workflow.open_validation_request(team.owner, claim_id)
    await container.validator_registry_service.remove_claim_validator(team.owner, claim_id, team.alice_profile_id)

    assert await workflow.remind_open_validation_request(team.owner, claim_id) == []
    request = await repository.get_request(request_id)
    assert request.status == RequestStatus.OPEN
    assert request.attempt_count == 1


@pytest.mark.asyncio
async def test_removing_last_pending_validator_closes_request(container, team, make_claim, repository):
    """Under ``all``, dropping the only validator still owing an answer settles the request."""
    claim_id = await make_claim(
        validation_mode=ValidationMode.ALL,
        validators=("alice@example.com", "bob@example.com"),
    )
    workflow = container.validation_workflow_service
    request_id = await workflow.open_validation_request(team.owner, claim_id)
    await workflow.submit_validation_response(team.alice, request_id, Answer.YES)

    await container.validator_registry_service.remove_claim_validator(team.owner, claim_id, team.bob_profile_id)

    request = await repository.get_request(request_id)
    assert request.status == RequestStatus.CLOSED
    assert request.closed_at is not None
    assert request.closing_mode == ValidationMode.ALL
    state = await container.claim_state_service.get_claim_state(team.owner, claim_id)
    assert state.state == ClaimState.AFFIRMED

    next_id = await workflow.open_validation_request(team.owner, claim_id)
    assert next_id != request_id
    assert (await repository.get_open_request(claim_id)).id == next_id


@pytest.mark.asyncio
async def test_switching_to_any_closes_answered_request(container, team, make_claim, repository):
    """A mode change that the recorded answers already satisfy closes the request."""
    claim_id = await make_claim(
        validation_mode=ValidationMode.ALL,
        validators=("alice@example.com", "bob@example.com"),
    )
    workflow = container.validation_workflow_service
    request_id = await workflow.open_validation_request(team.owner, claim_id)
    await workflow.submit_validation_response(team.alice, request_id, Answer.NO)

    await container.claim_service.edit_claim_validation_settings(
        team.owner, claim_id, ReviewCadence.MONTHLY, ValidationMode.ANY
    )

    request = await repository.get_request(request_id)
    assert request.status == RequestStatus.CLOSED
    assert request.closing_mode == ValidationMode.ANY
    state = await container.claim_state_service.get_claim_state(team.owner, claim_id)
    assert state.state == ClaimState.CHALLENGED

    next_id = await workflow.open_validation_request(team.owner, claim_id)
    assert (await repository.get_open_request(claim_id)).id == next_id


@pytest.mark.asyncio
async def test_settings_change_without_answers_keeps_request_open(container, team, make_claim, repository):
    claim_id = await make_claim(
        validation_mode=ValidationMode.ALL,
        validators=("alice@example.com", "bob@example.com"),
    )
    request_id = await container.validation_workflow_service.open_validation_request(team.owner, claim_id)

    await container.claim_service.edit_claim_validation_settings(
        team.owner, claim_id, ReviewCadence.WEEKLY, ValidationMode.ANY
    )
    await container.validator_registry_service.remove_claim_validator(team.owner, claim_id, team.bob_profile_id)

    assert (await repository.get_request(request_id)).status == RequestStatus.OPEN


@pytest.mark.asyncio
async def test_remind_without_open_request(container, team, make_claim):
    claim_id = await make_claim(validators=("alice@example.com",))

    with pytest.raises(NotFoundError) as exc_info:
        await container.validation_workflow_service.remind_open_validation_request(team.owner, claim_id)
    assert exc_info.value.code == "no_open_request"


@pytest.mark.asyncio
async def test_zero_validators_falls_back_to_owner(container, team, make_claim, repository):
    """Without validators the owner becomes the sole recipient."""
    claim_id = await make_claim()
    workflow = container.validation_workflow_service

    request_id = await workflow.open_validation_request(team.owner, claim_id)

    request = await repository.get_request(request_id)
    assert request.fallback_recipient_profile_id == team.owner_profile_id
    validators = await repository.list_validators(claim_id)
    assert [v.validator_profile_id for v in validators] == [team.owner_profile_id]

    with pytest.raises(AuthorizationError) as exc_info:
        await workflow.submit_validation_response(team.alice, request_id, Answer.YES)
    assert exc_info.value.code == "not_entitled"

    inbox = await workflow.validation_requests_for_me(team.owner)
    assert [item.request_id for item in inbox] == [request_id]

    closed = await workflow.submit_validation_response(team.owner, request_id, Answer.YES)
    assert closed.status == RequestStatus.CLOSED


@pytest.mark.asyncio
async def test_fallback_recipient_entitled_after_removal(container, team, make_claim):
    """The fallback recipient can still answer after leaving the registry."""
    claim_id = await make_claim(validation_mode=ValidationMode.ALL)
    workflow = container.validation_workflow_service
    request_id = await workflow.open_validation_request(team.owner, claim_id)
    await container.validator_registry_service.remove_claim_validator(
        team.owner, claim_id, team.owner_profile_id
    )

    request = await workflow.submit_validation_response(team.owner, request_id, Answer.UNSURE)
    assert request.status == RequestStatus.CLOSED


@pytest.mark.asyncio
async def test_failed_open_rolls_back_fallback_validator(container, team, make_claim, repository):
    """A conflicting open leaves no fallback validator behind."""
    claim_id = await make_claim()
    workflow = container.validation_workflow_service
    await workflow.open_validation_request(team.owner, claim_id)
    await container.validator_registry_service.remove_claim_validator(
        team.owner, claim_id, team.owner_profile_id
    )

    with pytest.raises(OpenRequestExistsError):
        await workflow.open_validation_request(team.owner, claim_id)

    assert await repository.list_validators(claim_id) == []


@pytest.mark.asyncio
async def test_duplicate_response_rejected(container, team, make_claim, repository):
    claim_id = await make_claim(
        validation_mode=ValidationMode.ALL,
        validators=("alice@example.com", "bob@example.com"),
    )
    workflow = container.validation_workflow_service
    request_id = await workflow.open_validation_request(team.owner, claim_id)
    await workflow.submit_validation_response(team.alice, request_id, Answer.YES)

    with pytest.raises(ValidationError) as exc_info:
        await workflow.submit_validation_response(team.alice, request_id, Answer.NO)
    assert exc_info.value.code == "duplicate_response"

    responses = await repository.list_responses(request_id)
    assert [r.answer for r in responses] == [Answer.YES]


@pytest.mark.asyncio
async def test_removed_validator_cannot_answer(container, team, make_claim):
    """Entitlement follows the live registry."""
    claim_id = await make_claim(
        validation_mode=ValidationMode.ALL,
        validators=("alice@example.com", "bob@example.com"),
    )
    workflow = container.validation_workflow_service
    request_id = await workflow.open_validation_request(team.owner, claim_id)
    await container.validator_registry_service.remove_claim_validator(team.owner, claim_id, team.bob_profile_id)

    with pytest.raises(AuthorizationError):
        await workflow.submit_validation_response(team.bob, request_id, Answer.YES)

    request = await workflow.submit_validation_response(team.alice, request_id, Answer.YES)
    assert request.status == RequestStatus.CLOSED


@pytest.mark.asyncio
async def test_open_rejections(container, team, make_claim):
    """Non-owners, foreign versions, unknown requests and retired claims are rejected."""
    claim_id = await make_claim(validators=("alice@example.com",))
    other_claim_id = await make_claim(text="Another claim")
    workflow = container.validation_workflow_service
    foreign_version = (await container.claim_service.list_text_versions(team.owner, other_claim_id))[0]

    with pytest.raises(AuthorizationError):
        await workflow.open_validation_request(team.alice, claim_id)
    with pytest.raises(NotFoundError):
        await workflow.open_validation_request(team.owner, claim_id, RequestKind.MANUAL, foreign_version.id)
    with pytest.raises(NotFoundError):
        await workflow.submit_validation_response(team.alice, "missing-request", Answer.YES)

    await container.claim_service.retire_claim(team.owner, claim_id)
    with pytest.raises(ValidationError) as exc_info:
        await workflow.open_validation_request(team.owner, claim_id)
    assert exc_info.value.code == "claim_retired"


@pytest.mark.asyncio
async def test_open_pins_given_version(container, team, make_claim, repository):
    """The request keeps the wording it was opened with."""
    claim_id = await make_claim(text="Version one", validators=("alice@example.com",))
    first_version = (await repository.list_text_versions(claim_id))[0]
    workflow = container.validation_workflow_service

    request_id = await workflow.open_validation_request(
        team.owner, claim_id, RequestKind.MANUAL, first_version.id
    )
    await container.claim_service.edit_claim_text_and_visibility(
        team.owner, claim_id, "Version two", (await repository.get_claim(claim_id)).visibility
    )

    item = await workflow.get_validation_request_for_me(team.alice, request_id)
    assert item.claim_text == "Version one"
    assert item.claim_text_version_id == first_version.id


@pytest.mark.asyncio
async def test_scheduler_opens_only_scheduled_requests(container, team, make_claim):
    claim_id = await make_claim(validators=("alice@example.com",))
    workflow = container.validation_workflow_service
    scheduler = Caller.scheduler()

    with pytest.raises(AuthorizationError):
        await workflow.open_validation_request(scheduler, claim_id, RequestKind.MANUAL)

    request_id = await workflow.open_validation_request(scheduler, claim_id, RequestKind.SCHEDULED)
    item = await workflow.get_validation_request_for_me(team.alice, request_id)
    assert item.kind == RequestKind.SCHEDULED

    pending = await workflow.remind_open_validation_request(scheduler, claim_id)
    assert [p.pending_validator_profile_id for p in pending] == [team.alice_profile_id]


@pytest.mark.asyncio
async def test_inbox_lists_requests_for_me(container, team, make_claim):
    """The inbox shows requests addressed to the caller and their own answer."""
    claim_id = await make_claim(
        validation_mode=ValidationMode.ALL,
        validators=("alice@example.com", "bob@example.com"),
    )
    workflow = container.validation_workflow_service
    request_id = await workflow.open_validation_request(team.owner, claim_id)
    await workflow.submit_validation_response(team.alice, request_id, Answer.UNSURE, "  needs data  ")

    alice_inbox = await workflow.validation_requests_for_me(team.alice)
    assert len(alice_inbox) == 1
    assert alice_inbox[0].my_answer == Answer.UNSURE
    assert alice_inbox[0].status == RequestStatus.OPEN
    assert alice_inbox[0].claim_text == "Our SLA is 99.9% uptime."

    bob_open = await workflow.validation_requests_for_me(team.bob, RequestStatus.OPEN)
    assert [item.my_answer for item in bob_open] == [None]
    assert await workflow.validation_requests_for_me(team.bob, RequestStatus.CLOSED) == []

    assert await workflow.validation_requests_for_me(team.outsider) == []
    with pytest.raises(NotFoundError):
        await workflow.get_validation_request_for_me(team.outsider, request_id)


@pytest.mark.asyncio
async def test_inbox_skips_requests_closed_before_registration(container, team, make_claim):
    """A late validator sees the rounds addressed to them, not earlier history."""
    claim_id = await make_claim(validators=("alice@example.com",))
    workflow = container.validation_workflow_service
    old_id = await workflow.open_validation_request(team.owner, claim_id)
    await workflow.submit_validation_response(team.alice, old_id, Answer.YES)

    await container.validator_registry_service.add_claim_validator_by_email(team.owner, claim_id, "bob@example.com")
    new_id = await workflow.open_validation_request(team.owner, claim_id)

    assert [item.request_id for item in await workflow.validation_requests_for_me(team.bob)] == [new_id]
    assert [item.request_id for item in await workflow.validation_requests_for_me(team.alice)] == [new_id, old_id]
    with pytest.raises(NotFoundError):
        await workflow.get_validation_request_for_me(team.bob, old_id)


@pytest.mark.asyncio
async def test_notifications_sent_after_commit(container, team, make_claim, notifier):
    claim_id = await make_claim(
        validation_mode=ValidationMode.ALL,
        validators=("alice@example.com", "bob@example.com"),
    )
    workflow = container.validation_workflow_service
    request_id = await workflow.open_validation_request(team.owner, claim_id)
    await workflow.remind_open_validation_request(team.owner, claim_id)

    entries = notifier.outbox(request_id)
    assert [e.event for e in entries] == ["opened", "reminder"]
    assert [e.attempt_count for e in entries] == [1, 2]
    assert {r.pending_validator_email for r in entries[0].recipients} == {
        "alice@example.com",
        "bob@example.com",
    }


@pytest.mark.asyncio
async def test_notifier_failure_keeps_request(container, team, make_claim, repository):
    """Delivery failures are logged; the committed request stays."""
    claim_id = await make_claim(validators=("alice@example.com",))
    failing = AsyncMock(spec=ValidationNotifier)
    failing.notify_request_opened.side_effect = RuntimeError("smtp down")
    workflow = ValidationWorkflowService(repository, container.identity_service, failing)

    request_id = await workflow.open_validation_request(team.owner, claim_id)

    failing.notify_request_opened.assert_awaited_once()
    assert (await repository.get_open_request(claim_id)).id == request_id


@pytest.mark.asyncio
async def test_concurrent_opens_yield_one_request(container, team, make_claim, repository):
    """Racing opens produce exactly one open request and one conflict."""
    claim_id = await make_claim(validators=("alice@example.com",))
    workflow = container.validation_workflow_service

    results = await asyncio.gather(
        workflow.open_validation_request(team.owner, claim_id),
        workflow.open_validation_request(team.owner, claim_id),
        return_exceptions=True,
    )

    successes = [r for r in results if isinstance(r, str)]
    conflicts = [r for r in results if isinstance(r, OpenRequestExistsError)]
    assert len(successes) == 1
    assert len(conflicts) == 1
    open_requests = [r for r in await repository.list_requests(claim_id) if r.status == RequestStatus.OPEN]
    assert len(open_requests) == 1


@pytest.mark.asyncio
async def test_concurrent_submits_close_exactly_once(container, team, make_claim, repository):
    """Racing final answers under ``all`` both land and close the request once."""
    claim_id = await make_claim(
        validation_mode=ValidationMode.ALL,
        validators=("alice@example.com", "bob@example.com"),
    )
    workflow = container.validation_workflow_service
    request_id = await workflow.open_validation_request(team.owner, claim_id)

    results = await asyncio.gather(
        workflow.submit_validation_response(team.alice, request_id, Answer.YES),
        workflow.submit_validation_response(team.bob, request_id, Answer.YES),
    )

    assert sorted(r.status.value for r in results) == ["closed", "open"]
    assert len(await repository.list_responses(request_id)) == 2
    stored = await repository.get_request(request_id)
    assert stored.status == RequestStatus.CLOSED
    assert stored.attempt_count == 1
