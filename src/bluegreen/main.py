"""API server entrypoint."""

from __future__ import annotations

import uvicorn

from bluegreen.config import get_settings
from bluegreen.infrastructure.observability.logging import setup_logging


def main() -> None:
    """Run the application."""
    settings = get_settings()
    setup_logging(settings.observability.log_level)

    # Deployments run as tasks of this process, so a single worker owns them.
    uvicorn.run(
        "bluegreen.api.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        workers=1,
        reload=settings.debug,
        log_level=settings.observability.log_level.lower(),
    )


if __name__ == "__main__":
    main()
