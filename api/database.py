"""
Database connection and storage management.
"""
import logging

from api.config import settings
from src.database.models import Base
from src.database.storage import SqlLogStorage, create_storage_engine

logger = logging.getLogger(__name__)

# Create SQLAlchemy engine
engine = create_storage_engine(settings.database_url, echo=settings.db_echo)


def get_storage() -> SqlLogStorage:
    """Storage bound to the application engine."""
    return SqlLogStorage(engine=engine)


def init_db():
    """
    Initialize database tables.
    Creates all tables defined in models.
    """
    logger.info("Initializing database...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized successfully")
