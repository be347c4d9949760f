"""Factory for creating and managing claim repositories."""

import logging
from typing import Any, Dict, Optional, Type

from ...domain.ports.claim_repository import ClaimRepository
from .memory_repository import InMemoryClaimRepository

logger = logging.getLogger(__name__)


class RepositoryFactory:
    """Factory for creating and managing repository adapters.

    This factory maintains a registry of available storage backends
    and handles their lifecycle (initialization, shutdown).
    """

    def __init__(self):
        """Initialize the factory."""
        self._backend_registry: Dict[str, Type[ClaimRepository]] = {}
        self._active_repositories: Dict[str, ClaimRepository] = {}

        # Register default backends
        self.register_backend("memory", InMemoryClaimRepository)

    def register_backend(self, name: str, repository_class: Type[ClaimRepository]) -> None:
        """Register a new repository class.

        Args:
            name: Unique identifier for the backend
            repository_class: The repository class to register
        """
        if name in self._backend_registry:
            raise ValueError(f"Backend {name} already registered")
        self._backend_registry[name] = repository_class

    async def create_repository(self, name: str, **config: Any) -> ClaimRepository:
        """Create and initialize a repository instance.

        Args:
            name: Name of the backend to create
            **config: Backend-specific configuration

        Returns:
            Initialized repository instance

        Raises:
            ValueError: If backend not found
            RuntimeError: If initialization fails
        """
        repository = self.build_repository(name, **config)
        return await self.start_repository(name, repository)

    async def start_repository(self, name: str, repository: ClaimRepository) -> ClaimRepository:
        """Initialize a built repository and track it as active.

        Raises:
            RuntimeError: If initialization fails
        """
        try:
            await repository.initialize()
        except Exception as e:
            raise RuntimeError(f"Failed to initialize backend {name}: {e}") from e
        self._active_repositories[name] = repository
        logger.info(f"✅ Storage backend {name} active")
        return repository

    def build_repository(self, name: str, **config: Any) -> ClaimRepository:
        """Construct a repository without initializing it.

        Raises:
            ValueError: If backend not found
        """
        if name not in self._backend_registry:
            raise ValueError(f"Backend {name} not registered")

        logger.info(f"🔨 Building {name} repository")
        return self._backend_registry[name](**config)

    def get_repository(self, name: str) -> Optional[ClaimRepository]:
        """Get an active repository by name.

        Returns:
            Repository instance if active, None otherwise
        """
        return self._active_repositories.get(name)

    async def shutdown_repository(self, name: str) -> None:
        """Shutdown a specific repository."""
        repository = self._active_repositories.get(name)
        if repository:
            await repository.shutdown()
            del self._active_repositories[name]

    async def shutdown_all(self) -> None:
        """Shutdown all active repositories."""
        for name in list(self._active_repositories.keys()):
            await self.shutdown_repository(name)

    @property
    def available_backends(self) -> Dict[str, bool]:
        """Registered backends and whether each has an active instance."""
        return {
            name: name in self._active_repositories
            for name in self._backend_registry
        }
