"""
Database Initialization Script

Creates all tables defined in the models module. Production databases
are managed with Alembic; this is for local development and tests.

Usage:
    python -m callsync.common.init_db
"""

import logging

from sqlalchemy.engine import Engine

from callsync.common.config import settings
from callsync.common.db import Base, create_db_engine
from callsync.common import models  # noqa: F401 - Import needed to register models

logger = logging.getLogger(__name__)


def create_tables(engine: Engine | None = None) -> Engine:
    """
    Create all database tables.

    Args:
        engine: Engine to create tables on; built from settings if omitted

    Returns:
        sqlalchemy.Engine: The engine the tables were created on
    """
    if engine is None:
        engine = create_db_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")
    return engine


if __name__ == '__main__':
    logging.basicConfig(level=settings.log_level)
    create_tables()
