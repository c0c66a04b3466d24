from __future__ import annotations

import logging
from pathlib import Path
from threading import Lock
from typing import Optional

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from sqlalchemy import create_engine

from .config import get_settings

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[1]

_upgrade_lock = Lock()
_upgraded = False


def build_alembic_config(database_url: Optional[str] = None) -> Config:
    ini_path = PROJECT_ROOT / "alembic.ini"
    cfg = Config(str(ini_path)) if ini_path.exists() else Config()
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    cfg.attributes["database_url"] = database_url or get_settings().database_url
    cfg.attributes["configure_logger"] = False
    return cfg


def current_revision(database_url: Optional[str] = None) -> Optional[str]:
    engine = create_engine(database_url or get_settings().database_url)
    try:
        with engine.connect() as connection:
            return MigrationContext.configure(connection).get_current_revision()
    finally:
        engine.dispose()


def run_migrations_once() -> None:
    """Upgrade the configured database to head the first time it is called."""
    global _upgraded
    if _upgraded:
        return
    with _upgrade_lock:
        if _upgraded:
            return
        logger.info("Upgrading database schema to head")
        command.upgrade(build_alembic_config(), "head")
        _upgraded = True
        logger.info("Database schema is at revision %s", current_revision())
