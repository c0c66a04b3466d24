#!/usr/bin/env python
"""Start the shiftgrid API under Uvicorn.

Pending Alembic revisions are applied first when RUN_MIGRATIONS_ON_STARTUP
is enabled, so the app's own startup hook finds the schema at head.
"""

from __future__ import annotations

import logging
import os
import sys

import uvicorn

from shiftgrid.config import get_settings
from shiftgrid.migration_runner import current_revision, run_migrations_once

logger = logging.getLogger("shiftgrid.runserver")


def main() -> int:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    if settings.run_migrations_on_startup:
        try:
            run_migrations_once()
        except Exception:
            logger.exception("Migrations failed; not starting the server")
            return 1
        logger.info("Schema at revision %s", current_revision())

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    logger.info("Starting %s on %s:%s", settings.app_name, host, port)
    uvicorn.run("shiftgrid.main:app", host=host, port=port, log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
