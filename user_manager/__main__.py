"""Process entry point: ``python -m user_manager``."""
import logging
import sys

import uvicorn

from .config import ConfigurationError, configure_logging, load_settings, validate_settings
from .main import create_app

logger = logging.getLogger("user_manager")


def main() -> int:
    try:
        settings = load_settings()
        configure_logging(settings.log_level)
        validate_settings(settings)
    except ConfigurationError as exc:
        configure_logging()
        logger.error(f"{exc}. See .env.example for reference.")
        return 1

    app = create_app(settings)
    logger.info(f"Server running in {settings.environment} mode on port {settings.port}")
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
