"""Main script for running the claim keeper API server."""

import uvicorn

from .infrastructure.config import ClaimKeeperSettings


def main():
    """Run the API server."""
    settings = ClaimKeeperSettings.from_env()
    print("Claim Keeper - claim tracking and validation workflow")
    print("-----------------------------------------------------")
    uvicorn.run(
        "claim_keeper.api.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
