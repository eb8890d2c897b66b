"""
Entry point.

Run: python -m tillpoint
"""

import uvicorn

from tillpoint._config import Settings
from tillpoint._logging import configure_logging
from tillpoint.wire import app_from_settings


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(
        app_from_settings(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
