"""Service configuration loaded from the environment."""

import logging
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ClaimKeeperSettings(BaseModel):
    """Configuration for the claim keeper service."""

    storage_backend: str = Field(default="memory", description="Repository backend name")
    transaction_timeout: float = Field(default=5.0, gt=0, description="Seconds to wait for a write lock")
    scheduler_token: Optional[str] = Field(None, description="Shared secret of the scheduler principal")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    log_level: str = Field(default="INFO", description="Root log level")
    host: str = Field(default="127.0.0.1", description="Bind host for the API server")
    port: int = Field(default=8000, description="Bind port for the API server")

    @classmethod
    def from_env(cls) -> "ClaimKeeperSettings":
        """Create configuration from environment variables (and a .env file)."""
        load_dotenv()

        origins = os.getenv("CLAIM_KEEPER_CORS_ORIGINS", "*")
        scheduler_token = os.getenv("CLAIM_KEEPER_SCHEDULER_TOKEN") or None
        if scheduler_token is None:
            logger.info("🚫 CLAIM_KEEPER_SCHEDULER_TOKEN not set - scheduled requests disabled")

        return cls(
            storage_backend=os.getenv("CLAIM_KEEPER_STORAGE", "memory"),
            transaction_timeout=float(os.getenv("CLAIM_KEEPER_TRANSACTION_TIMEOUT", "5.0")),
            scheduler_token=scheduler_token,
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.getenv("CLAIM_KEEPER_LOG_LEVEL", "INFO").upper(),
            host=os.getenv("CLAIM_KEEPER_HOST", "127.0.0.1"),
            port=int(os.getenv("CLAIM_KEEPER_PORT", "8000")),
        )
