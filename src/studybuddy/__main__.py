"""Run the study buddy server: ``python -m studybuddy``."""

from __future__ import annotations

import uvicorn

from studybuddy.config import get_settings
from studybuddy.observability import configure_logging, get_logger
from studybuddy.server import build_app


def main() -> None:
    settings = get_settings()
    configure_logging(settings.logging.format, settings.logging.level)
    get_logger("studybuddy").info(
        "starting server", host=settings.server.host, port=settings.server.port,
        store=settings.store.backend, environment=settings.environment,
    )
    uvicorn.run(build_app(settings), host=settings.server.host, port=settings.server.port,
                log_level=settings.logging.level.lower())


if __name__ == "__main__":
    main()
