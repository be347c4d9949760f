"""Dependency injection configuration for hexagonal architecture."""

import hmac
import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, Header

from ..domain.models.workspace import Caller
from ..domain.ports.claim_repository import ClaimRepository
from ..domain.ports.notifier import ValidationNotifier
from ..domain.services.claim_service import ClaimService
from ..domain.services.claim_state_service import ClaimStateService
from ..domain.services.identity_service import IdentityService
from ..domain.services.validation_workflow_service import ValidationWorkflowService
from ..domain.services.validator_registry_service import ValidatorRegistryService
from ..domain.services.visibility_service import VisibilityService
from .config import ClaimKeeperSettings
from .notifications.logging_notifier import LoggingNotifier
from .persistence.factory import RepositoryFactory

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Service container for dependency injection."""

    def __init__(
        self,
        settings: Optional[ClaimKeeperSettings] = None,
        repository: Optional[ClaimRepository] = None,
        notifier: Optional[ValidationNotifier] = None,
    ):
        """Initialize service container.

        Args:
            settings: Service configuration, read from the environment when omitted
            repository: Repository to use instead of building one from settings
            notifier: Notifier to use instead of the logging notifier
        """
        self.settings = settings or ClaimKeeperSettings.from_env()
        self.repository_factory = RepositoryFactory()
        self._services: Dict[str, Any] = {}
        self._setup_services(repository, notifier)

    def _setup_services(
        self,
        repository: Optional[ClaimRepository],
        notifier: Optional[ValidationNotifier],
    ) -> None:
        """Setup all services and their dependencies."""
        logger.info("🔧 Setting up service container...")

        if repository is None:
            repository = self.repository_factory.build_repository(
                self.settings.storage_backend,
                transaction_timeout=self.settings.transaction_timeout,
            )
        notifier = notifier or LoggingNotifier()

        identity = IdentityService(repository)
        self._services = {
            "repository": repository,
            "notifier": notifier,
            "identity_service": identity,
            "claim_service": ClaimService(repository, identity),
            "validator_registry_service": ValidatorRegistryService(repository, identity),
            "validation_workflow_service": ValidationWorkflowService(repository, identity, notifier),
            "claim_state_service": ClaimStateService(repository, identity),
            "visibility_service": VisibilityService(repository, identity),
        }

        logger.info(f"✅ Service container ready (storage={repository.backend_name})")

    async def startup(self) -> None:
        """Initialize storage through the factory so it is tracked as active."""
        await self.repository_factory.start_repository(self.repository.backend_name, self.repository)

    async def shutdown(self) -> None:
        await self.repository_factory.shutdown_all()

    def get(self, service_name: str) -> Any:
        """Get a service by name.

        Raises:
            KeyError: If service not found
        """
        if service_name not in self._services:
            raise KeyError(f"Service '{service_name}' not found")
        return self._services[service_name]

    @property
    def repository(self) -> ClaimRepository:
        return self.get("repository")

    @property
    def notifier(self) -> ValidationNotifier:
        return self.get("notifier")

    @property
    def identity_service(self) -> IdentityService:
        return self.get("identity_service")

    @property
    def claim_service(self) -> ClaimService:
        return self.get("claim_service")

    @property
    def validator_registry_service(self) -> ValidatorRegistryService:
        return self.get("validator_registry_service")

    @property
    def validation_workflow_service(self) -> ValidationWorkflowService:
        return self.get("validation_workflow_service")

    @property
    def claim_state_service(self) -> ClaimStateService:
        return self.get("claim_state_service")

    @property
    def visibility_service(self) -> VisibilityService:
        return self.get("visibility_service")


# Global service container instance
@lru_cache()
def get_service_container() -> ServiceContainer:
    """Get global service container instance."""
    return ServiceContainer()


# Convenience functions for FastAPI dependency injection
def get_identity_service(container: ServiceContainer = Depends(get_service_container)) -> IdentityService:
    return container.identity_service


def get_claim_service(container: ServiceContainer = Depends(get_service_container)) -> ClaimService:
    return container.claim_service


def get_validator_registry_service(
    container: ServiceContainer = Depends(get_service_container),
) -> ValidatorRegistryService:
    return container.validator_registry_service


def get_validation_workflow_service(
    container: ServiceContainer = Depends(get_service_container),
) -> ValidationWorkflowService:
    return container.validation_workflow_service


def get_claim_state_service(container: ServiceContainer = Depends(get_service_container)) -> ClaimStateService:
    return container.claim_state_service


def get_visibility_service(container: ServiceContainer = Depends(get_service_container)) -> VisibilityService:
    return container.visibility_service


def get_caller(
    container: ServiceContainer = Depends(get_service_container),
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    x_scheduler_token: Optional[str] = Header(None),
) -> Caller:
    """Resolve the caller from headers set by the upstream auth proxy.

    Anything unrecognized resolves to an anonymous caller; services reject
    those before touching data.
    """
    token = container.settings.scheduler_token
    if x_scheduler_token and token and hmac.compare_digest(x_scheduler_token, token):
        return Caller.scheduler()
    if x_user_id and x_user_id.strip():
        return Caller.user(x_user_id.strip(), (x_user_email or "").strip() or None)
    return Caller.anonymous()
