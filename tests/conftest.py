"""Test configuration and common fixtures."""

from types import SimpleNamespace
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from claim_keeper.domain.models.claim import ValidationMode, Visibility
from claim_keeper.domain.models.workspace import Caller
from claim_keeper.infrastructure.config import ClaimKeeperSettings
from claim_keeper.infrastructure.dependencies import ServiceContainer
from claim_keeper.infrastructure.notifications.logging_notifier import LoggingNotifier
from claim_keeper.infrastructure.persistence.memory_repository import (
    InMemoryClaimRepository,
    MemoryRepositoryConfig,
)

SCHEDULER_TOKEN = "scheduler-test-token"


@pytest_asyncio.fixture
async def repository() -> AsyncGenerator[InMemoryClaimRepository, None]:
    """Provide an initialized in-memory repository."""
    repo = InMemoryClaimRepository(MemoryRepositoryConfig(transaction_timeout=1.0))
    await repo.initialize()
    yield repo
    await repo.shutdown()


@pytest.fixture
def notifier() -> LoggingNotifier:
    """Provide a notifier that records decisions."""
    return LoggingNotifier()


@pytest.fixture
def container(repository: InMemoryClaimRepository, notifier: LoggingNotifier) -> ServiceContainer:
    """Provide a service container wired to the test repository."""
    settings = ClaimKeeperSettings(scheduler_token=SCHEDULER_TOKEN)
    return ServiceContainer(settings=settings, repository=repository, notifier=notifier)


@pytest_asyncio.fixture
async def team(container: ServiceContainer) -> SimpleNamespace:
    """A workspace with an owner, two members, and an outsider in another workspace."""
    identity = container.identity_service

    owner = Caller.user("user-owner", "owner@example.com")
    alice = Caller.user("user-alice", "alice@example.com")
    bob = Caller.user("user-bob", "bob@example.com")
    outsider = Caller.user("user-outsider", "outsider@example.com")

    workspace_id = await identity.bootstrap_workspace(owner, "Acme")
    alice_profile = await identity.add_member(workspace_id, alice.user_id, alice.email)
    bob_profile = await identity.add_member(workspace_id, bob.user_id, bob.email)
    other_workspace_id = await identity.bootstrap_workspace(outsider, "Elsewhere")

    owner_profile_id = (await identity.my_profile_ids(owner))[0]
    outsider_profile_id = (await identity.my_profile_ids(outsider))[0]

    return SimpleNamespace(
        workspace_id=workspace_id,
        other_workspace_id=other_workspace_id,
        owner=owner,
        alice=alice,
        bob=bob,
        outsider=outsider,
        owner_profile_id=owner_profile_id,
        alice_profile_id=alice_profile.id,
        bob_profile_id=bob_profile.id,
        outsider_profile_id=outsider_profile_id,
    )


@pytest.fixture
def make_claim(container: ServiceContainer, team: SimpleNamespace):
    """Factory creating a claim owned by the team owner."""

    async def _make_claim(
        text: str = "Our SLA is 99.9% uptime.",
        visibility: Visibility = Visibility.WORKSPACE,
        validation_mode: ValidationMode = ValidationMode.ANY,
        validators: tuple = (),
    ) -> str:
        claim_id = await container.claim_service.create_claim_with_text(
            team.owner,
            team.workspace_id,
            visibility=visibility,
            validation_mode=validation_mode,
            text=text,
        )
        for email in validators:
            await container.validator_registry_service.add_claim_validator_by_email(
                team.owner, claim_id, email
            )
        return claim_id

    return _make_claim
