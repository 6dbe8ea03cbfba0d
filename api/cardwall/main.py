from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

load_dotenv()

from .db import engine
from .errors import register_error_handlers
from .routers import (
    admin,
    comments,
    likes,
    notifications,
    posts,
    reports,
    system,
    taxonomy,
    users,
)
from .settings import VAULT_PUBLIC_PREFIX

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
        script = ScriptDirectory.from_config(alembic_cfg)
        target_rev = script.get_current_head()

        try:
            with engine.connect() as connection:
                context = MigrationContext.configure(connection)
                current_rev = context.get_current_revision()
        finally:
            engine.dispose()

        if current_rev == target_rev:
            logger.info(f"Database is up to date (revision: {current_rev}), skipping migrations.")
            return

        logger.info(f"Current revision: {current_rev}, Target revision: {target_rev}. Running migrations...")
        command.upgrade(alembic_cfg, target_rev)
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
        run_migrations()
        _STARTUP_COMPLETE = True
        logger.info("Startup tasks completed.")
    except Exception as e:
        logger.error(f"Startup tasks failed: {e}", exc_info=True)
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    run_startup_tasks()
    logger.info("Cardwall API server ready")
    yield
    logger.info("Shutting down application...")


app = FastAPI(
    title="Cardwall API",
    version="1.0.0",
    description="Image-backed text cards with likes, comments, follows and notifications",
    lifespan=lifespan,
)

cors_origins_str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost")
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

register_error_handlers(app)

app.include_router(system.router)
app.include_router(users.router)
app.include_router(posts.router)
app.include_router(likes.router)
app.include_router(comments.router)
app.include_router(notifications.router)
app.include_router(taxonomy.category_router)
app.include_router(taxonomy.tag_router)
app.include_router(reports.router)
app.include_router(admin.router)


# Mount vault directory for serving uploaded images
vault_location = os.environ.get("VAULT_LOCATION")
if vault_location:
    vault_path = Path(vault_location)
    vault_path.mkdir(parents=True, exist_ok=True)
    app.mount(VAULT_PUBLIC_PREFIX, StaticFiles(directory=str(vault_path)), name="vault")
    logger.info(f"Mounted vault at {VAULT_PUBLIC_PREFIX} from {vault_location}")
