import logging

import uvicorn

from .config import get_settings
from .logging_config import configure_logging


def main() -> None:
    configure_logging()
    settings = get_settings()
    logger = logging.getLogger("academy")
    logger.info("Starting Sales Funnel Academy on %s:%s", settings.host, settings.port)
    uvicorn.run(
        "academy.main:app",
        host=settings.host,
        port=settings.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
