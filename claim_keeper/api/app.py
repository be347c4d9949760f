"""FastAPI application for the Claim Keeper service."""

import contextlib
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..infrastructure.config import ClaimKeeperSettings
from ..infrastructure.dependencies import get_service_container
from .endpoints import claims, health, validation, workspaces

settings = ClaimKeeperSettings.from_env()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize storage on startup and release it on shutdown."""
    container = get_service_container()
    await container.startup()
    logger.info(f"🚀 Claim Keeper started (storage={container.repository.backend_name})")

    yield  # Application runs here

    await container.shutdown()
    logger.info("👋 Claim Keeper stopped")


# Create FastAPI application
app = FastAPI(
    title="Claim Keeper API",
    description="Claim tracking and human validation workflow",
    version="0.1.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(workspaces.router)
app.include_router(claims.router)
app.include_router(validation.router)
