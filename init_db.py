#!/usr/bin/env python3
"""
Initialize the database tables.
"""

from antraege.database import engine, Base
import structlog

logger = structlog.get_logger()


def init_database():
    """Create all tables that do not exist yet."""
    try:
        # Import all models to ensure they're registered
        from antraege.models import antrag

        Base.metadata.create_all(bind=engine)

        logger.info("Database tables created successfully", tables=sorted(Base.metadata.tables))

    except Exception as e:
        logger.error("Failed to initialize database", error=str(e))
        raise


if __name__ == "__main__":
    init_database()
    print("Database initialized successfully!")
