"""Health check endpoints."""

from typing import Dict, Union

from fastapi import APIRouter, Depends

from ...infrastructure.dependencies import ServiceContainer, get_service_container

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(
    container: ServiceContainer = Depends(get_service_container),
) -> Dict[str, Union[str, Dict[str, bool]]]:
    """Check the health of the service and its storage.

    Returns:
        Service status, active storage backend and registered backends
    """
    return {
        "status": "healthy",
        "storage": container.repository.backend_name,
        "storage_backends": container.repository_factory.available_backends,
    }
