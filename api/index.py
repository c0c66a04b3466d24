"""Vercel entrypoint for the FastAPI application."""

from __future__ import annotations

import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

from shiftgrid.config import get_settings  # noqa: E402
from shiftgrid.migration_runner import run_migrations_once  # noqa: E402

# serverless workers may never fire the startup event
if get_settings().run_migrations_on_startup:
    run_migrations_once()

from shiftgrid.main import app as fastapi_app  # noqa: E402

app = fastapi_app
