from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from . import storage
from .middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from .routers import (
    admin,
    auth,
    comments,
    emojis,
    media,
    pages,
    posts,
    reactions,
    system,
    tags,
    users,
)
from .seed import ensure_seed_data
from .settings import RUN_MIGRATIONS_ON_STARTUP

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

_STARTUP_COMPLETE = False


def _alembic_config() -> Config:
    base_dir = Path(__file__).resolve().parent.parent
    cfg = Config(str(base_dir / "alembic.ini"))
    cfg.set_main_option("script_location", str(base_dir / "alembic"))
    return cfg


def run_migrations() -> None:
    logger.info("run_migrations: Starting...")
    try:
        alembic_cfg = _alembic_config()

        from alembic.runtime.migration import MigrationContext
        from alembic.script import ScriptDirectory
        from .db import engine

        try:
            with engine.connect() as connection:
                context = MigrationContext.configure(connection)
                current_rev = context.get_current_revision()
                head = ScriptDirectory.from_config(alembic_cfg).get_current_head()

                if current_rev == head:
                    logger.info(f"Database is up to date (revision: {current_rev}), skipping migrations.")
                    return

                logger.info(f"Current revision: {current_rev}, target revision: {head}. Running migrations...")
        finally:
            # Ensure connection is closed before calling command.upgrade
            engine.dispose()

        command.upgrade(alembic_cfg, "head")
        logger.info("run_migrations: Completed successfully.")
    except Exception as e:
        logger.error(f"run_migrations: Error occurred: {e}", exc_info=True)
        raise


def run_startup_tasks() -> None:
    global _STARTUP_COMPLETE
    if _STARTUP_COMPLETE:
        logger.info("run_startup_tasks: Already completed, skipping.")
        return
    try:
        if RUN_MIGRATIONS_ON_STARTUP:
            run_migrations()
        else:
            logger.info("run_startup_tasks: RUN_MIGRATIONS_ON_STARTUP is off, skipping migrations.")
        ensure_seed_data()

        # Object storage may come up after the API; uploads fail until it does
        try:
            storage.ensure_bucket()
        except storage.StorageError as e:
            logger.warning(f"Object storage not ready: {e}")

        _STARTUP_COMPLETE = True
        logger.info("Startup tasks completed.")
    except Exception as e:
        logger.error(f"Startup tasks failed: {e}", exc_info=True)
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    # Server won't accept requests until these complete
    run_startup_tasks()
    logger.info("homesite server ready")
    yield
    logger.info("Shutting down application...")


app = FastAPI(
    title="homesite",
    version="1.0.0",
    description="Personal website and community platform",
    lifespan=lifespan,
)

# CORS Configuration - restrict to specific origins
cors_origins_str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:8000")
if cors_origins_str == "*":
    logger.warning(
        "CORS is configured to allow all origins. "
        "This is insecure for production. Set CORS_ORIGINS to specific domains."
    )
cors_origins = [origin.strip() for origin in cors_origins_str.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    max_age=600,  # Cache preflight requests for 10 minutes
)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)


# JSON API
API_PREFIX = "/api"
app.include_router(system.router, prefix=API_PREFIX)
app.include_router(auth.router, prefix=API_PREFIX)
app.include_router(users.router, prefix=API_PREFIX)
app.include_router(posts.router, prefix=API_PREFIX)
app.include_router(comments.router, prefix=API_PREFIX)
app.include_router(reactions.router, prefix=API_PREFIX)
app.include_router(tags.router, prefix=API_PREFIX)
app.include_router(emojis.router, prefix=API_PREFIX)
app.include_router(media.router, prefix=API_PREFIX)
app.include_router(admin.router, prefix=API_PREFIX)

# Server-rendered pages and their scripts
static_path = Path(__file__).resolve().parent / "static"
app.mount("/static", StaticFiles(directory=str(static_path)), name="static")
app.include_router(pages.router)
