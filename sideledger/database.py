"""Database module.

Provides SQLAlchemy engine/session setup and the Alembic migration entrypoint
so schema changes are explicit and reproducible across environments.
"""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from sideledger.config import settings

logger = logging.getLogger(__name__)

ALEMBIC_INI_PATH = Path(__file__).resolve().parent.parent / "alembic.ini"


class Base(DeclarativeBase):
    """Base declarative class for all ORM entities."""


connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, connect_args=connect_args, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db():
    """FastAPI dependency that yields a transaction-capable DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def alembic_config(database_url: str | None = None) -> Config:
    """Build an Alembic config bound to the given (or configured) database URL."""
    alembic_cfg = Config(str(ALEMBIC_INI_PATH))
    alembic_cfg.set_main_option("script_location", str(ALEMBIC_INI_PATH.parent / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url or settings.database_url)
    return alembic_cfg


def run_migrations(database_url: str | None = None) -> None:
    """Upgrade the database schema to the latest Alembic revision."""
    command.upgrade(alembic_config(database_url), "head")
    logger.info("Database migrations applied successfully")
