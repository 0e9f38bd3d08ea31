import logging
import sys
from typing import Optional

import uvicorn

from user_api.app import create_app
from user_api.dependencies import SqliteDatabase
from user_api.lifecycle import ShutdownHandler
from user_api.log import setup_logging
from user_api.pipeline import setup_telemetry
from user_api.settings import Settings

logger = logging.getLogger(__name__)


def main():
    """Run the API until SIGINT/SIGTERM, then exit with the shutdown's exit code."""
    settings = Settings.from_env()
    setup_logging(settings.log_level)

    # Initialize tracing before anything creates spans
    pipeline = setup_telemetry(settings)

    server: Optional[uvicorn.Server] = None

    def stop_server(exit_code: int) -> None:
        if server is not None:
            server.should_exit = True

    shutdown = ShutdownHandler(pipeline, exit=stop_server)

    database = SqliteDatabase(settings.database_path) if settings.database_path else None
    app = create_app(settings, pipeline, database=database, shutdown=shutdown)

    server = uvicorn.Server(
        uvicorn.Config(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    )
    logger.info("App listening at http://%s:%s", settings.host, settings.port)
    server.run()

    if shutdown.exit_code is None:
        # Server never got through startup; shut the pipeline down here
        try:
            pipeline.shutdown()
        except Exception:
            logger.exception("Error shutting down OpenTelemetry SDK")
            sys.exit(1)
        sys.exit(0)
    sys.exit(shutdown.exit_code)


if __name__ == "__main__":
    main()
