"""Entry point for the mirror API server."""

import asyncio
import contextlib
import sys

import structlog
import uvicorn

from mailmirror.app import create_app
from mailmirror.config import Settings
from mailmirror.logging import configure_logging

logger = structlog.get_logger()


async def serve(settings: Settings) -> None:
    """Run uvicorn with the configured application.

    Uvicorn installs the SIGTERM/SIGINT handlers; the application lifespan
    cancels background sync and enrichment work on the way out.

    Args:
        settings: Server configuration.
    """
    app = create_app(settings)
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level="warning",
        access_log=False,
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Entry point for python -m mailmirror."""
    settings = Settings()
    configure_logging(debug=settings.debug)

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(serve(settings))

    sys.exit(0)


if __name__ == "__main__":
    main()
