import logging
import os
import sys

import uvicorn

from .app import create_app
from .core.exceptions import FatalError

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str = "WARNING") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, handlers=[logging.StreamHandler()])


def run(mechanism: str = "dotenv") -> None:
    """Start the server, or exit with status 1 when startup hits a fatal error."""
    # Settings are not loaded yet, so the level comes from the process environment
    configure_logging(os.environ.get("NEUFW_LOG_LEVEL", "WARNING"))

    try:
        app = create_app(mechanism)
    except FatalError as e:
        logger.critical(f"Startup failed: {e}")
        sys.exit(1)

    settings = app.state.context.settings
    uvicorn.run(
        app,
        host=settings.get_setting("host") or "0.0.0.0",
        port=int(settings.get_setting("port") or 8080),
    )


if __name__ == "__main__":
    run()
